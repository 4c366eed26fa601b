"""
Load resource schema descriptors from YAML.

A descriptor declares one custom resource kind, its served versions and the
changes of each field along those versions::

    kind: Person
    group: example.com
    plural: persons
    versions:
      - name: v1alpha1
        deprecated: true
      - v1
    enums:
      Gender:
        variants:
          - name: Unknown
          - name: Male
    fields:
      - name: username
        type: string
        required: true
      - name: gender
        type: string
        changes:
          - added: {since: v1alpha1, default: Unknown}
          - retyped: {since: v1, fromType: Gender, converter: identity}
"""

from pathlib import Path
import logging
from typing import Dict

import yaml

from versioning.changes import Added, Deprecated, Renamed, Retyped
from versioning.errors import SchemaError
from versioning.schema import (
    ResourceSchema,
    SchemaMember,
    SchemaVersionSet,
    VersionDefinition,
)
from versioning.version import Group, ParseGroupError, ParseVersionError, Version

from .converters import DROP, resolve_converter

logger = logging.getLogger(__name__)

CHANGE_KINDS = ("added", "renamed", "retyped", "deprecated")


class DescriptorError(SchemaError):
    pass


def load_descriptor(path) -> ResourceSchema:
    path = Path(path)
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise DescriptorError(f"{path}: invalid YAML: {e}") from e
    return schema_from_dict(data, source=str(path))


def load_descriptors(directory) -> Dict[str, ResourceSchema]:
    """Load every ``*.yaml``/``*.yml`` descriptor of ``directory``, keyed by kind."""
    directory = Path(directory)
    if not directory.is_dir():
        raise DescriptorError(f"schema directory {directory} does not exist")
    schemas: Dict[str, ResourceSchema] = {}
    paths = sorted(list(directory.glob("*.yaml")) + list(directory.glob("*.yml")))
    for path in paths:
        schema = load_descriptor(path)
        if schema.kind in schemas:
            raise DescriptorError(f"{path}: kind {schema.kind} is declared more than once")
        schemas[schema.kind] = schema
        logger.info(f"Loaded schema for {schema.kind} from {path}")
    return schemas


def schema_from_dict(data, source="<descriptor>") -> ResourceSchema:
    if not isinstance(data, dict):
        raise DescriptorError(f"{source}: descriptor must be a mapping")

    kind = _require_str(data, "kind", source)
    group = _require_str(data, "group", source)
    try:
        Group.parse(group)
    except ParseGroupError as e:
        raise DescriptorError(f"{source}: {e}") from e
    plural = data.get("plural") or f"{kind.lower()}s"

    versions = [_parse_version_definition(v, source) for v in _require_list(data, "versions", source)]

    enums = {}
    for enum_name, enum_data in (data.get("enums") or {}).items():
        where = f"{source}: enum {enum_name}"
        if not isinstance(enum_data, dict):
            raise DescriptorError(f"{where} must be a mapping")
        variants = [
            _parse_member(v, where, variant=True)
            for v in _require_list(enum_data, "variants", where)
        ]
        enums[enum_name] = SchemaVersionSet(f"{kind}.{enum_name}", versions, variants)

    members = [_parse_member(f, source) for f in _require_list(data, "fields", source)]
    fields = SchemaVersionSet(kind, versions, members)

    return ResourceSchema(
        kind=kind,
        group=group,
        plural=plural,
        fields=fields,
        enums=enums,
        preserve_unknown_fields=bool(data.get("preserveUnknownFields", False)),
    )


def _require_str(data, key, source):
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise DescriptorError(f"{source}: {key!r} must be a non-empty string")
    return value


def _require_list(data, key, source):
    value = data.get(key)
    if not isinstance(value, list):
        raise DescriptorError(f"{source}: {key!r} must be a list")
    return value


def _parse_version(text, source) -> Version:
    try:
        return Version.parse(text)
    except ParseVersionError as e:
        raise DescriptorError(f"{source}: {e}") from e


def _parse_version_definition(entry, source) -> VersionDefinition:
    if isinstance(entry, str):
        return VersionDefinition(_parse_version(entry, source))
    if not isinstance(entry, dict):
        raise DescriptorError(f"{source}: versions must be strings or mappings")
    return VersionDefinition(
        _parse_version(_require_str(entry, "name", source), source),
        deprecated=bool(entry.get("deprecated", False)),
        deprecation_warning=entry.get("deprecationWarning"),
    )


def _parse_member(entry, source, variant=False) -> SchemaMember:
    if isinstance(entry, str):
        entry = {"name": entry}
    if not isinstance(entry, dict):
        raise DescriptorError(f"{source}: members must be strings or mappings")
    name = _require_str(entry, "name", source)
    where = f"{source}: {name}"
    changes = entry.get("changes") or []
    if not isinstance(changes, list):
        raise DescriptorError(f"{where}: 'changes' must be a list")
    declarations = tuple(_parse_change(c, where, variant) for c in changes)
    return SchemaMember(
        name=name,
        type="variant" if variant else entry.get("type", "any"),
        declarations=declarations,
        required=bool(entry.get("required", False)),
        description=entry.get("description"),
    )


def _parse_change(entry, source, variant):
    if not isinstance(entry, dict) or len(entry) != 1:
        raise DescriptorError(
            f"{source}: each change must be a mapping with exactly one of {', '.join(CHANGE_KINDS)}"
        )
    change_kind, arguments = next(iter(entry.items()))
    if change_kind not in CHANGE_KINDS:
        raise DescriptorError(f"{source}: unknown change {change_kind!r}")
    if not isinstance(arguments, dict):
        raise DescriptorError(f"{source}: arguments of {change_kind!r} must be a mapping")
    where = f"{source} ({change_kind})"
    since = _parse_version(_require_str(arguments, "since", where), where)
    downgrade = arguments.get("downgradeWith")

    if change_kind == "added":
        if downgrade not in (None, DROP):
            raise DescriptorError(
                f"{where}: an added field can only be downgraded with {DROP!r}"
            )
        return Added(since, default=arguments.get("default"), allow_downgrade=downgrade == DROP)

    if variant and downgrade is not None:
        raise DescriptorError(f"{where}: enum variants do not take 'downgradeWith'")
    downgrade_with = resolve_converter(downgrade) if downgrade is not None else None

    if change_kind == "renamed":
        return Renamed(since, _require_str(arguments, "fromName", where), downgrade_with)
    if change_kind == "retyped":
        if variant:
            raise DescriptorError(f"{where}: enum variants cannot be retyped")
        return Retyped(
            since,
            from_type=_require_str(arguments, "fromType", where),
            converter=resolve_converter(arguments.get("converter", "identity")),
            from_name=arguments.get("fromName"),
            downgrade_with=downgrade_with,
        )
    return Deprecated(since, note=arguments.get("note"))
