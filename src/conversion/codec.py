import logging
from typing import Dict, Tuple

from versioning.schema import ResourceSchema, VersionShape
from versioning.version import Version

logger = logging.getLogger(__name__)

ANY = "any"


class ShapeError(ValueError):
    """A document does not fit the resolved shape of a version."""


def _is_integer(value):
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value):
    return isinstance(value, (int, float)) and not isinstance(value, bool)


TYPE_CHECKS = {
    "string": lambda v: isinstance(v, str),
    "integer": _is_integer,
    "number": _is_number,
    "boolean": lambda v: isinstance(v, bool),
    "object": lambda v: isinstance(v, dict),
    "array": lambda v: isinstance(v, list),
}


class SpecCodec:
    """
    Decodes and encodes the ``spec`` of an object against the resolved shape
    of one version of a resource.

    Known members are type checked; types which are neither JSON types nor
    enums declared by the schema are opaque and accept any value. Keys which
    are not part of the shape are dropped unless the schema preserves unknown
    fields.
    """

    def __init__(self, schema: ResourceSchema):
        self.schema = schema
        self._shapes: Dict[Version, VersionShape] = {
            version: schema.fields.shape(version) for version in schema.versions
        }
        self._variants = {
            (enum_name, version): {name for name, _ in enum_set.members_at(version)}
            for enum_name, enum_set in schema.enums.items()
            for version in enum_set.versions
        }

    def shape(self, version: Version) -> VersionShape:
        return self._shapes[version]

    def decode(self, spec, version: Version) -> Tuple[dict, dict]:
        """Return the known members of ``spec`` and the unknown ones separately."""
        if not isinstance(spec, dict):
            raise ShapeError(f"spec must be an object, got {type(spec).__name__}")
        shape = self._shapes[version]
        known = {}
        for field in shape.fields:
            if field.name in spec:
                known[field.name] = spec[field.name]
        unknown = {k: v for k, v in spec.items() if shape.get(k) is None}
        if unknown and not self.schema.preserve_unknown_fields:
            logger.debug(
                f"Dropping unknown fields {sorted(unknown)} of {self.schema.kind} {version}"
            )
            unknown = {}
        self._check(known, shape)
        return known, unknown

    def encode(self, document: dict, version: Version, unknown=None) -> dict:
        shape = self._shapes[version]
        self._check(document, shape)
        spec = {f.name: document[f.name] for f in shape.fields if f.name in document}
        extra = [k for k in document if shape.get(k) is None]
        if extra:
            raise ShapeError(f"fields {sorted(extra)} are not part of {version}")
        for key, value in (unknown or {}).items():
            spec.setdefault(key, value)
        return spec

    def _check(self, document: dict, shape: VersionShape):
        for field in shape.fields:
            if field.name not in document or document[field.name] is None:
                if field.required:
                    raise ShapeError(f"missing required field {field.name!r}")
                continue
            value = document[field.name]
            if field.type in self.schema.enums:
                variants = self._variants[(field.type, shape.version)]
                if not isinstance(value, str) or value not in variants:
                    raise ShapeError(
                        f"field {field.name!r} must be one of {sorted(variants)}, got {value!r}"
                    )
                continue
            check = TYPE_CHECKS.get(field.type)
            if check is not None and not check(value):
                raise ShapeError(
                    f"field {field.name!r} must be of type {field.type}, "
                    f"got {type(value).__name__}"
                )
