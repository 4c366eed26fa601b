"""
Named value converters used by ``retyped`` changes and reverse conversions.

Descriptors refer to converters by name. Built-in converters are registered
at import; operators can register more with :func:`register_converter` before
schemas are loaded, or reference any function as ``package.module:function``.
The registry is only written during startup.
"""

import importlib
import logging
from typing import Any, Callable, Dict

from versioning.errors import SchemaError

logger = logging.getLogger(__name__)

DROP = "drop"

_CONVERTERS: Dict[str, Callable[[Any], Any]] = {}


class UnknownConverterError(SchemaError):
    pass


def register_converter(name: str):
    """Decorator registering ``fn`` under ``name``."""

    def decorator(fn):
        if name in _CONVERTERS and _CONVERTERS[name] is not fn:
            raise ValueError(f"converter {name!r} is already registered")
        _CONVERTERS[name] = fn
        return fn

    return decorator


def resolve_converter(reference: str) -> Callable[[Any], Any]:
    if reference in _CONVERTERS:
        return _CONVERTERS[reference]
    if ":" not in reference:
        raise UnknownConverterError(
            f"unknown converter {reference!r}; use one of {', '.join(sorted(_CONVERTERS))} "
            f"or a 'package.module:function' reference"
        )
    module_name, _, attribute = reference.partition(":")
    try:
        module = importlib.import_module(module_name)
        fn = getattr(module, attribute)
    except (ImportError, AttributeError) as e:
        raise UnknownConverterError(f"cannot import converter {reference!r}: {e}") from e
    if not callable(fn):
        raise UnknownConverterError(f"converter {reference!r} is not callable")
    logger.debug(f"Resolved converter {reference}")
    return fn


def registered_converters():
    return sorted(_CONVERTERS)


@register_converter("identity")
def identity(value):
    return value


@register_converter("string")
def to_string(value):
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


@register_converter("integer")
def to_integer(value):
    if value is None:
        return None
    return int(value)


@register_converter("number")
def to_number(value):
    if value is None:
        return None
    number = float(value)
    return int(number) if number.is_integer() else number


@register_converter("boolean")
def to_boolean(value):
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1", "on")
    return bool(value)


@register_converter(DROP)
def drop(value):
    return None
