"""
Change declarations and resolved item statuses.

A *declaration* is an explicit event attached to a member at one version
(``Added``, ``Renamed``, ``Retyped``, ``Deprecated``). A *status* is the
resolved state of a member at one declared resource version, derived from the
declarations by :class:`versioning.chain.ItemVersionChain`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional

from .version import Version

Converter = Callable[[Any], Any]


# Declarations


@dataclass(frozen=True)
class Added:
    since: Version
    default: Any = None
    # Downgrading across an addition drops the field; this must be opted into.
    allow_downgrade: bool = False


@dataclass(frozen=True)
class Renamed:
    since: Version
    from_name: str
    downgrade_with: Optional[Converter] = None


@dataclass(frozen=True)
class Retyped:
    since: Version
    from_type: str
    converter: Converter
    from_name: Optional[str] = None
    downgrade_with: Optional[Converter] = None


@dataclass(frozen=True)
class Deprecated:
    since: Version
    note: Optional[str] = None


# Statuses


class ItemStatus:
    """Base class of the resolved state of a member at one version."""

    present = True
    deprecated = False
    # Statuses which change the shape of the member compared to the previous
    # version. Only these need an explicit reverse converter to be downgraded.
    transition = False

    @property
    def downgradable(self) -> bool:
        return True


@dataclass(frozen=True)
class NotPresent(ItemStatus):
    present = False

    @property
    def name(self):
        return None

    @property
    def type(self):
        return None


NOT_PRESENT = NotPresent()


@dataclass(frozen=True)
class Addition(ItemStatus):
    name: str
    type: str
    default: Any = None
    allow_downgrade: bool = False
    transition = True

    @property
    def downgradable(self) -> bool:
        return self.allow_downgrade


@dataclass(frozen=True)
class Rename(ItemStatus):
    from_name: str
    to_name: str
    type: str
    downgrade_with: Optional[Converter] = None
    transition = True

    @property
    def name(self) -> str:
        return self.to_name

    @property
    def downgradable(self) -> bool:
        return self.downgrade_with is not None


@dataclass(frozen=True)
class Retype(ItemStatus):
    from_name: str
    to_name: str
    from_type: str
    to_type: str
    converter: Converter
    downgrade_with: Optional[Converter] = None
    transition = True

    @property
    def name(self) -> str:
        return self.to_name

    @property
    def type(self) -> str:
        return self.to_type

    @property
    def downgradable(self) -> bool:
        return self.downgrade_with is not None


@dataclass(frozen=True)
class Deprecation(ItemStatus):
    name: str
    type: str
    note: Optional[str] = None
    deprecated = True


@dataclass(frozen=True)
class NoChange(ItemStatus):
    name: str
    type: str
    previously_deprecated: bool = False

    @property
    def deprecated(self) -> bool:
        return self.previously_deprecated
