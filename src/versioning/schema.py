"""
Version sets and resource schemas.

A version set ties the declared versions of a resource (or of an enum) to the
chain of each of its members, and answers which members exist under which
name and type at a given version.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Dict, List, Optional, Sequence, Tuple

from .chain import ItemVersionChain
from .changes import ItemStatus
from .errors import DuplicateVersionError, EmptyVersionSetError, NameCollisionError
from .version import Version

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SchemaMember:
    """A field or enum variant, declared with its latest name and type."""

    name: str
    type: str = "any"
    declarations: Tuple = ()
    required: bool = False
    description: Optional[str] = None


@dataclass(frozen=True)
class VersionDefinition:
    version: Version
    deprecated: bool = False
    deprecation_warning: Optional[str] = None


@dataclass(frozen=True)
class FieldShape:
    name: str
    type: str
    required: bool = False
    deprecated: bool = False


@dataclass(frozen=True)
class VersionShape:
    """The resolved members of a resource at one version."""

    version: Version
    fields: Tuple[FieldShape, ...]

    @property
    def names(self) -> List[str]:
        return [f.name for f in self.fields]

    def get(self, name: str) -> Optional[FieldShape]:
        for f in self.fields:
            if f.name == name:
                return f
        return None


class SchemaVersionSet:
    """
    The declared versions of one container plus the chain of every member.

    Built once from a schema declaration and only read afterwards. Construction
    fails on duplicate versions, on declarations referencing undeclared
    versions, on badly ordered declarations and on two members resolving to
    the same name in any version.
    """

    def __init__(self, name: str, versions: Sequence[VersionDefinition], members: Sequence[SchemaMember]):
        self.name = name
        if not versions:
            raise EmptyVersionSetError(f"{name} does not declare any version")
        definitions = sorted(versions, key=lambda d: d.version)
        for previous, current in zip(definitions, definitions[1:]):
            if previous.version == current.version:
                raise DuplicateVersionError(
                    f"{name} declares version {current.version} more than once"
                )
        self.definitions: Tuple[VersionDefinition, ...] = tuple(definitions)
        self.versions: Tuple[Version, ...] = tuple(d.version for d in definitions)
        self._definitions = {d.version: d for d in definitions}

        self.members: Tuple[SchemaMember, ...] = tuple(members)
        self.chains: Dict[str, ItemVersionChain] = {}
        for member in self.members:
            if member.name in self.chains:
                raise NameCollisionError(self.latest, member.name, [member.name, member.name])
            self.chains[member.name] = ItemVersionChain.for_member(member, self.versions)
        self._check_collisions()
        logger.info(
            f"Built version set for {name}: {len(self.members)} members across "
            f"versions {', '.join(str(v) for v in self.versions)}"
        )

    def _check_collisions(self):
        for version in self.versions:
            seen: Dict[str, List[str]] = {}
            for member_name, chain in self.chains.items():
                status = chain.status_at(version)
                if status.present:
                    seen.setdefault(status.name, []).append(member_name)
            for resolved, owners in seen.items():
                if len(owners) > 1:
                    raise NameCollisionError(version, resolved, owners)

    @property
    def latest(self) -> Version:
        return self.versions[-1]

    def __contains__(self, version: Version) -> bool:
        return version in self._definitions

    def chain(self, member_name: str) -> ItemVersionChain:
        return self.chains[member_name]

    def members_at(self, version: Version) -> List[Tuple[str, ItemStatus]]:
        """Return ``(name, status)`` of every member visible in ``version``."""
        visible = []
        for member in self.members:
            status = self.chains[member.name].status_at(version)
            if status.present:
                visible.append((status.name, status))
        return visible

    def shape(self, version: Version) -> VersionShape:
        fields = []
        for member in self.members:
            status = self.chains[member.name].status_at(version)
            if status.present:
                fields.append(
                    FieldShape(status.name, status.type, member.required, status.deprecated)
                )
        return VersionShape(version, tuple(fields))

    def adjacent_pairs(self) -> List[Tuple[Version, Version]]:
        return list(zip(self.versions, self.versions[1:]))

    def is_deprecated(self, version: Version) -> bool:
        return self._definitions[version].deprecated

    def deprecation_warning(self, version: Version) -> Optional[str]:
        definition = self._definitions[version]
        if not definition.deprecated:
            return None
        return definition.deprecation_warning or f"{self.name} {version} is deprecated"

    def explain(self, member_name: str, version: Version) -> str:
        """Describe the status of a member at a version and its nearest changes."""
        chain = self.chains[member_name]
        status = chain.resolve(version)
        below, above = chain.nearest_declarations(version)
        parts = [f"{member_name} at {version}: {type(status).__name__}"]
        if status.present:
            parts.append(f"named {status.name!r} of type {status.type!r}")
        parts.append(f"nearest change below: {below or 'none'}")
        parts.append(f"nearest change above: {above or 'none'}")
        return ", ".join(parts)


@dataclass
class ResourceSchema:
    """A versioned custom resource: its fields plus the enums they refer to."""

    kind: str
    group: str
    plural: str
    fields: SchemaVersionSet
    enums: Dict[str, SchemaVersionSet] = field(default_factory=dict)
    preserve_unknown_fields: bool = False

    @property
    def versions(self) -> Tuple[Version, ...]:
        return self.fields.versions

    @property
    def crd_name(self) -> str:
        return f"{self.plural}.{self.group}"

    def api_version(self, version: Version) -> str:
        return f"{self.group}/{version}"
