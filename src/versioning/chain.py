"""
Resolution of sparse change declarations into the status of one member at
every declared version, plus the sorted-key lookups it is built on.
"""

from __future__ import annotations

from bisect import bisect_left, bisect_right
import logging
from typing import Dict, Optional, Sequence, Tuple

from .changes import (
    NOT_PRESENT,
    Added,
    Addition,
    Deprecated,
    Deprecation,
    ItemStatus,
    NoChange,
    Rename,
    Renamed,
    Retype,
    Retyped,
)
from .errors import ChainOrderError, SchemaError, VersionNotDeclaredError
from .version import Version

logger = logging.getLogger(__name__)


def get_neighbors(keys: Sequence, key) -> Tuple[Optional[object], Optional[object]]:
    """Return the existing keys directly below and directly above ``key``.

    ``keys`` must be sorted. ``key`` itself is never returned, whether it is
    part of ``keys`` or not. Given the keys 1, 3, 5:

    - key 0: ``(None, 1)``
    - key 2: ``(1, 3)``
    - key 3: ``(1, 5)``
    - key 6: ``(5, None)``
    """
    lo = bisect_left(keys, key)
    hi = bisect_right(keys, key)
    below = keys[lo - 1] if lo > 0 else None
    above = keys[hi] if hi < len(keys) else None
    return below, above


def floor(keys: Sequence, key):
    """Return the greatest key of the sorted ``keys`` which is ``<= key``."""
    index = bisect_right(keys, key)
    return keys[index - 1] if index else None


class ItemVersionChain:
    """
    The status of one member at every version declared by the resource.

    The member is declared with its latest name and type plus a sparse list of
    declarations. Versions without a declaration inherit the state of the
    nearest lower declaration: a rename carries the new name forward and a
    deprecation stays visible as ``previously_deprecated``.

    A member whose first declaration is ``Added`` is ``NotPresent`` before it.
    Any other member exists from the first version on, under the name and type
    it had before its first rename or retype.
    """

    def __init__(self, name: str, type: str, declarations: Sequence, versions: Sequence[Version]):
        self.name = name
        self.type = type
        self.declarations = tuple(declarations)
        self.versions = tuple(versions)
        self._validate()

        self._declared_versions = [d.since for d in self.declarations]
        self._declared = {d.since: d for d in self.declarations}
        self._added_first = bool(self.declarations) and isinstance(
            self.declarations[0], Added
        )
        self._before: Dict[Version, Tuple[str, str]] = {}
        self._after: Dict[Version, Tuple[str, str]] = {}
        self._initial = self._walk_back()
        self._statuses = self._resolve()

    @classmethod
    def for_member(cls, member, versions: Sequence[Version]) -> ItemVersionChain:
        return cls(member.name, member.type, member.declarations, versions)

    def _validate(self):
        previous = None
        for declaration in self.declarations:
            if previous is not None and declaration.since <= previous.since:
                raise ChainOrderError(
                    f"changes of {self.name!r} must use strictly increasing versions, "
                    f"but {declaration.since} follows {previous.since}"
                )
            previous = declaration

        declared = set(self.versions)
        for declaration in self.declarations:
            if declaration.since not in declared:
                raise VersionNotDeclaredError(self.name, declaration.since)

        last = len(self.declarations) - 1
        for index, declaration in enumerate(self.declarations):
            if isinstance(declaration, Added) and index != 0:
                raise ChainOrderError(
                    f"{self.name!r} can only be added once, before any other change"
                )
            if isinstance(declaration, Deprecated) and index != last:
                raise ChainOrderError(
                    f"{self.name!r} can only be deprecated once, after every other change"
                )

    def _walk_back(self) -> Tuple[str, str]:
        # Names and types are declared in their latest form, so the state
        # before each change is found by undoing the changes newest first.
        name, type_ = self.name, self.type
        for declaration in reversed(self.declarations):
            self._after[declaration.since] = (name, type_)
            if isinstance(declaration, Renamed):
                if declaration.from_name == name:
                    raise SchemaError(
                        f"{self.name!r} is renamed from {name!r} to itself in {declaration.since}"
                    )
                name = declaration.from_name
            elif isinstance(declaration, Retyped):
                type_ = declaration.from_type
                if declaration.from_name:
                    name = declaration.from_name
            self._before[declaration.since] = (name, type_)
        return name, type_

    def _resolve(self) -> Dict[Version, ItemStatus]:
        name, type_ = self._initial
        present = not self._added_first
        deprecated = False
        statuses: Dict[Version, ItemStatus] = {}

        for version in self.versions:
            declaration = self._declared.get(version)
            if declaration is None:
                if present:
                    statuses[version] = NoChange(name, type_, deprecated)
                else:
                    statuses[version] = NOT_PRESENT
                continue

            from_name, from_type = self._before[version]
            name, type_ = self._after[version]
            if isinstance(declaration, Added):
                present = True
                status = Addition(name, type_, declaration.default, declaration.allow_downgrade)
            elif isinstance(declaration, Renamed):
                status = Rename(from_name, name, type_, declaration.downgrade_with)
            elif isinstance(declaration, Retyped):
                status = Retype(
                    from_name,
                    name,
                    from_type,
                    type_,
                    declaration.converter,
                    declaration.downgrade_with,
                )
            elif isinstance(declaration, Deprecated):
                deprecated = True
                status = Deprecation(name, type_, declaration.note)
            else:
                raise SchemaError(f"unknown change {declaration!r} on {self.name!r}")
            statuses[version] = status

        logger.debug(
            f"Resolved chain of {self.name!r}: "
            + ", ".join(f"{v}={type(s).__name__}" for v, s in statuses.items())
        )
        return statuses

    def status_at(self, version: Version) -> ItemStatus:
        try:
            return self._statuses[version]
        except KeyError:
            raise VersionNotDeclaredError(self.name, version) from None

    def resolve(self, version: Version) -> ItemStatus:
        """Resolve the status at any version, declared by the resource or not.

        The nearest declaration at or below ``version`` is projected forward.
        """
        nearest = floor(self._declared_versions, version)
        if nearest is None:
            if self._added_first:
                return NOT_PRESENT
            name, type_ = self._initial
            return NoChange(name, type_)
        if nearest == version and version in self._statuses:
            return self._statuses[version]
        name, type_ = self._after[nearest]
        deprecated = isinstance(self._declared[nearest], Deprecated)
        return NoChange(name, type_, deprecated)

    def nearest_declarations(self, version: Version):
        """Return the declared change versions directly below and above ``version``."""
        return get_neighbors(self._declared_versions, version)

    def items(self):
        return [(version, self._statuses[version]) for version in self.versions]

    def __getitem__(self, version: Version) -> ItemStatus:
        return self.status_at(version)

    def __repr__(self):
        return f"ItemVersionChain({self.name!r}, {len(self.declarations)} changes)"
