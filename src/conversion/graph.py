"""
Conversion between the versions of one resource.

For every pair of adjacent versions an upgrade step is derived from the
member chains. A downgrade step is only derived when every member which
changes shape in the upper version (added, renamed or retyped) declares how to
go back. Steps are composed into a converter for every reachable
``(source, destination)`` pair once, when the graph is built; the graph is
read-only afterwards and can be shared between concurrent requests.
"""

import copy
import logging
from typing import Callable, Dict, List, Optional, Tuple

from versioning.changes import Addition, Rename, Retype
from versioning.errors import SchemaError
from versioning.schema import ResourceSchema
from versioning.version import Version

from .errors import NoConversionPathError

logger = logging.getLogger(__name__)


class AddField:
    def __init__(self, name, default):
        self.name = name
        self.default = default

    def apply(self, source: dict, destination: dict):
        destination[self.name] = copy.deepcopy(self.default)

    def __repr__(self):
        return f"AddField({self.name!r})"


class CopyField:
    def __init__(self, source_name, destination_name, converter=None, variants=None):
        self.source_name = source_name
        self.destination_name = destination_name
        self.converter = converter
        self.variants = variants

    def apply(self, source: dict, destination: dict):
        if self.source_name not in source:
            return
        value = source[self.source_name]
        if self.converter is not None:
            value = self.converter(value)
        if self.variants and isinstance(value, str):
            value = self.variants.get(value, value)
        destination[self.destination_name] = value

    def __repr__(self):
        return f"CopyField({self.source_name!r} -> {self.destination_name!r})"


class AdjacentConverter:
    """Converts a document from one version to a neighbouring version."""

    def __init__(self, source: Version, destination: Version, fields: List):
        self.source = source
        self.destination = destination
        self.fields = tuple(fields)

    def __call__(self, document: dict) -> dict:
        converted = {}
        for field in self.fields:
            field.apply(document, converted)
        return converted

    def __repr__(self):
        return f"AdjacentConverter({self.source} -> {self.destination})"


class ComposedConverter:
    def __init__(self, source: Version, destination: Version, hops):
        self.source = source
        self.destination = destination
        self.hops = tuple(hops)

    @property
    def route(self) -> List[Version]:
        return [self.source] + [hop.destination for hop in self.hops]

    def __call__(self, document: dict) -> dict:
        for hop in self.hops:
            document = hop(document)
        return document

    def __repr__(self):
        return f"ComposedConverter({' -> '.join(str(v) for v in self.route)})"


class ConversionGraph:
    def __init__(self, schema: ResourceSchema):
        self.schema = schema
        self.versions: Tuple[Version, ...] = schema.versions
        self._upgrades: Dict[Tuple[Version, Version], AdjacentConverter] = {}
        self._downgrades: Dict[Tuple[Version, Version], AdjacentConverter] = {}

        for lower, upper in schema.fields.adjacent_pairs():
            self._upgrades[(lower, upper)] = self._upgrade_step(lower, upper)
            downgrade = self._downgrade_step(lower, upper)
            if downgrade is not None:
                self._downgrades[(upper, lower)] = downgrade

        self._paths: Dict[Tuple[Version, Version], ComposedConverter] = {}
        for i, source in enumerate(self.versions):
            for j, destination in enumerate(self.versions):
                hops = self._compose(i, j)
                if hops is not None:
                    self._paths[(source, destination)] = ComposedConverter(
                        source, destination, hops
                    )
        logger.info(
            f"Built conversion graph for {schema.kind}: {len(self._paths)} paths, "
            f"{len(self._downgrades)} of {len(self._upgrades)} steps downgradable"
        )

    def _statuses(self, lower: Version, upper: Version):
        for chain in self.schema.fields.chains.values():
            yield chain, chain.status_at(lower), chain.status_at(upper)

    def _variant_map(self, enum_name, lower, upper, reverse=False) -> Optional[Dict[str, str]]:
        enum_set = self.schema.enums.get(enum_name)
        if enum_set is None:
            return None
        mapping = {}
        for chain in enum_set.chains.values():
            before, after = chain.status_at(lower), chain.status_at(upper)
            if before.present and after.present and before.name != after.name:
                if reverse:
                    mapping[after.name] = before.name
                else:
                    mapping[before.name] = after.name
        return mapping or None

    def _upgrade_step(self, lower: Version, upper: Version) -> AdjacentConverter:
        fields = []
        for chain, before, after in self._statuses(lower, upper):
            if not after.present:
                continue
            if isinstance(after, Addition):
                fields.append(AddField(after.name, after.default))
                continue
            if not before.present:
                raise SchemaError(
                    f"{chain.name!r} appears in {upper} without being added"
                )
            converter = after.converter if isinstance(after, Retype) else None
            variants = None
            if before.type == after.type:
                variants = self._variant_map(after.type, lower, upper)
            fields.append(CopyField(before.name, after.name, converter, variants))
        return AdjacentConverter(lower, upper, fields)

    def _downgrade_step(self, lower: Version, upper: Version) -> Optional[AdjacentConverter]:
        fields = []
        for chain, before, after in self._statuses(lower, upper):
            if after.transition and not after.downgradable:
                logger.debug(
                    f"No downgrade from {upper} to {lower} of {self.schema.kind}: "
                    f"{chain.name!r} has no reverse conversion"
                )
                return None
            if not before.present:
                continue
            converter = after.downgrade_with if isinstance(after, (Rename, Retype)) else None
            variants = None
            if before.type == after.type:
                variants = self._variant_map(after.type, lower, upper, reverse=True)
            fields.append(CopyField(after.name, before.name, converter, variants))
        return AdjacentConverter(upper, lower, fields)

    def _compose(self, i: int, j: int):
        versions = self.versions
        if i <= j:
            return [self._upgrades[(versions[k], versions[k + 1])] for k in range(i, j)]
        hops = []
        for k in range(i, j, -1):
            step = self._downgrades.get((versions[k], versions[k - 1]))
            if step is None:
                return None
            hops.append(step)
        return hops

    def has_path(self, source: Version, destination: Version) -> bool:
        return (source, destination) in self._paths

    def converter(self, source: Version, destination: Version) -> Callable[[dict], dict]:
        try:
            return self._paths[(source, destination)]
        except KeyError:
            raise NoConversionPathError(source, destination) from None

    def convert(self, document: dict, source: Version, destination: Version) -> dict:
        return self.converter(source, destination)(document)

    def paths(self) -> List[Tuple[Version, Version]]:
        return sorted(self._paths)
