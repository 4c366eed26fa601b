"""Tests for version sets, resource schemas and YAML descriptors."""
import json
import sys
from pathlib import Path

import pytest

# Ensure src is importable when running pytest from repo root
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from conversion import (  # noqa: E402
    DescriptorError,
    UnknownConverterError,
    load_descriptor,
    load_descriptors,
    register_converter,
    resolve_converter,
    schema_from_dict,
)
from versioning import (  # noqa: E402
    Added,
    DuplicateVersionError,
    EmptyVersionSetError,
    NameCollisionError,
    Renamed,
    SchemaMember,
    SchemaVersionSet,
    Version,
    VersionDefinition,
    VersionNotDeclaredError,
)

V = Version.parse
PERSON = ROOT / "schemas" / "person.yaml"


def _definitions(*names):
    return [VersionDefinition(V(name)) for name in names]


def _descriptor(**overrides):
    data = {
        "kind": "Thing",
        "group": "test.example.com",
        "versions": ["v1", "v2"],
        "fields": [{"name": "name", "type": "string"}],
    }
    data.update(overrides)
    return data


class TestSchemaVersionSet:
    def test_versions_are_sorted(self):
        version_set = SchemaVersionSet("Thing", _definitions("v2", "v1alpha1", "v1"), [])
        assert [str(v) for v in version_set.versions] == ["v1alpha1", "v1", "v2"]
        assert version_set.latest == V("v2")
        assert V("v1") in version_set
        assert V("v3") not in version_set

    def test_duplicate_version(self):
        with pytest.raises(DuplicateVersionError):
            SchemaVersionSet("Thing", _definitions("v1", "v2", "v1"), [])

    def test_empty_version_set(self):
        with pytest.raises(EmptyVersionSetError):
            SchemaVersionSet("Thing", [], [])

    def test_name_collision_through_rename(self):
        members = [
            SchemaMember("a", "string"),
            SchemaMember("b", "string", (Renamed(V("v2"), "a"),)),
        ]
        with pytest.raises(NameCollisionError) as excinfo:
            SchemaVersionSet("Thing", _definitions("v1", "v2"), members)
        assert excinfo.value.version == V("v1")
        assert excinfo.value.name == "a"
        assert excinfo.value.members == ["a", "b"]

    def test_duplicate_member(self):
        members = [SchemaMember("a", "string"), SchemaMember("a", "integer")]
        with pytest.raises(NameCollisionError):
            SchemaVersionSet("Thing", _definitions("v1"), members)

    def test_change_in_undeclared_version(self):
        members = [SchemaMember("a", "string", (Added(V("v3")),))]
        with pytest.raises(VersionNotDeclaredError):
            SchemaVersionSet("Thing", _definitions("v1", "v2"), members)

    def test_members_at(self):
        members = [
            SchemaMember("name", "string"),
            SchemaMember("status", "string", (Added(V("v2"), default="unknown"),)),
        ]
        version_set = SchemaVersionSet("Thing", _definitions("v1", "v2"), members)
        assert [name for name, _ in version_set.members_at(V("v1"))] == ["name"]
        assert [name for name, _ in version_set.members_at(V("v2"))] == ["name", "status"]
        assert version_set.adjacent_pairs() == [(V("v1"), V("v2"))]

    def test_default_deprecation_warning(self):
        version_set = SchemaVersionSet(
            "Thing", [VersionDefinition(V("v1"), deprecated=True), VersionDefinition(V("v2"))], []
        )
        assert version_set.is_deprecated(V("v1"))
        assert version_set.deprecation_warning(V("v1")) == "Thing v1 is deprecated"
        assert version_set.deprecation_warning(V("v2")) is None


class TestPersonDescriptor:
    def setup_method(self):
        self.schema = load_descriptor(PERSON)

    def test_resource(self):
        assert self.schema.kind == "Person"
        assert self.schema.crd_name == "persons.test.example.com"
        assert self.schema.api_version(V("v3")) == "test.example.com/v3"
        assert [str(v) for v in self.schema.versions] == [
            "v1alpha1",
            "v1alpha2",
            "v1beta1",
            "v2",
            "v3",
        ]
        assert not self.schema.preserve_unknown_fields

    def test_first_version_shape(self):
        shape = self.schema.fields.shape(V("v1alpha1"))
        assert shape.names == ["username", "fullName", "legacyId"]
        assert shape.get("username").required

    def test_latest_version_shape(self):
        shape = self.schema.fields.shape(V("v3"))
        assert shape.names == [
            "username",
            "firstName",
            "lastName",
            "displayName",
            "legacyId",
            "gender",
        ]
        assert shape.get("legacyId").deprecated
        assert shape.get("gender").type == "string"
        assert self.schema.fields.shape(V("v2")).get("gender").type == "Gender"
        assert shape.get("fullName") is None

    def test_enum_variants(self):
        gender = self.schema.enums["Gender"]
        assert [name for name, _ in gender.members_at(V("v2"))] == ["Unknown", "Male", "Female"]

    def test_deprecated_version(self):
        fields = self.schema.fields
        assert fields.is_deprecated(V("v1alpha1"))
        assert not fields.is_deprecated(V("v3"))
        assert fields.deprecation_warning(V("v1alpha1")) == (
            "test.example.com/v1alpha1 Person is deprecated, use v3"
        )

    def test_explain(self):
        fields = self.schema.fields
        assert fields.explain("displayName", V("v1alpha2")) == (
            "displayName at v1alpha2: NoChange, named 'fullName' of type 'string', "
            "nearest change below: none, nearest change above: v1beta1"
        )
        assert fields.explain("gender", V("v1beta1")) == (
            "gender at v1beta1: NotPresent, nearest change below: none, "
            "nearest change above: v2"
        )


class TestDescriptorParsing:
    def test_plural_defaults_from_kind(self):
        schema = schema_from_dict(_descriptor())
        assert schema.plural == "things"

    def test_version_definitions(self):
        schema = schema_from_dict(
            _descriptor(versions=[{"name": "v1", "deprecated": True}, "v2"])
        )
        assert schema.fields.is_deprecated(V("v1"))
        assert not schema.fields.is_deprecated(V("v2"))

    def test_preserve_unknown_fields(self):
        schema = schema_from_dict(_descriptor(preserveUnknownFields=True))
        assert schema.preserve_unknown_fields

    def test_retyped_converter_defaults_to_identity(self):
        schema = schema_from_dict(
            _descriptor(
                fields=[
                    {
                        "name": "size",
                        "type": "number",
                        "changes": [{"retyped": {"since": "v2", "fromType": "integer"}}],
                    }
                ]
            )
        )
        status = schema.fields.chain("size").status_at(V("v2"))
        assert status.converter(3) == 3
        assert status.downgrade_with is None

    def test_module_function_converter(self):
        schema = schema_from_dict(
            _descriptor(
                fields=[
                    {
                        "name": "data",
                        "type": "string",
                        "changes": [
                            {
                                "retyped": {
                                    "since": "v2",
                                    "fromType": "object",
                                    "converter": "json:dumps",
                                    "downgradeWith": "json:loads",
                                }
                            }
                        ],
                    }
                ]
            )
        )
        status = schema.fields.chain("data").status_at(V("v2"))
        assert status.converter is json.dumps
        assert status.downgrade_with is json.loads

    @pytest.mark.parametrize(
        "overrides",
        [
            {"kind": ""},
            {"group": "Not_A_Group"},
            {"versions": "v1"},
            {"versions": ["v1", "version2"]},
            {"fields": {"name": "string"}},
            {"fields": [{"name": "a", "changes": [{"moved": {"since": "v2"}}]}]},
            {"fields": [{"name": "a", "changes": [{"added": {"since": "v2"}, "deprecated": {"since": "v2"}}]}]},
            {"fields": [{"name": "a", "changes": [{"added": {"since": "v2", "downgradeWith": "identity"}}]}]},
            {"fields": [{"name": "a", "changes": [{"renamed": {"since": "v2"}}]}]},
            {"fields": [{"name": "a", "changes": [{"retyped": {"since": "v2"}}]}]},
            {"fields": [{"name": "a", "changes": [{"deprecated": {}}]}]},
            {"enums": {"E": {"variants": [{"name": "X", "changes": [{"retyped": {"since": "v2", "fromType": "string"}}]}]}}},
            {"enums": {"E": {"variants": [{"name": "X", "changes": [{"renamed": {"since": "v2", "fromName": "Y", "downgradeWith": "identity"}}]}]}}},
        ],
    )
    def test_invalid_descriptor(self, overrides):
        with pytest.raises(DescriptorError):
            schema_from_dict(_descriptor(**overrides))

    def test_not_a_mapping(self):
        with pytest.raises(DescriptorError):
            schema_from_dict(["kind", "Thing"])

    def test_unknown_converter(self):
        with pytest.raises(UnknownConverterError):
            schema_from_dict(
                _descriptor(
                    fields=[
                        {
                            "name": "a",
                            "changes": [{"retyped": {"since": "v2", "fromType": "string", "converter": "rot13"}}],
                        }
                    ]
                )
            )


class TestDescriptorFiles:
    def test_load_directory(self, tmp_path):
        (tmp_path / "person.yaml").write_text(PERSON.read_text())
        (tmp_path / "thing.yml").write_text(json.dumps(_descriptor()))
        (tmp_path / "notes.txt").write_text("not a descriptor")
        schemas = load_descriptors(tmp_path)
        assert sorted(schemas) == ["Person", "Thing"]

    def test_duplicate_kind(self, tmp_path):
        (tmp_path / "a.yaml").write_text(json.dumps(_descriptor()))
        (tmp_path / "b.yaml").write_text(json.dumps(_descriptor()))
        with pytest.raises(DescriptorError):
            load_descriptors(tmp_path)

    def test_missing_directory(self, tmp_path):
        with pytest.raises(DescriptorError):
            load_descriptors(tmp_path / "missing")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("kind: [unclosed\n")
        with pytest.raises(DescriptorError):
            load_descriptor(path)


class TestConverters:
    def test_builtin_converters(self):
        assert resolve_converter("string")(True) == "true"
        assert resolve_converter("string")(12) == "12"
        assert resolve_converter("integer")("42") == 42
        assert resolve_converter("number")("1.0") == 1
        assert resolve_converter("number")("1.5") == 1.5
        assert resolve_converter("boolean")("Yes") is True
        assert resolve_converter("boolean")(0) is False
        assert resolve_converter("drop")("anything") is None

    def test_register_converter(self):
        @register_converter("test-upper")
        def upper(value):
            return value.upper()

        assert resolve_converter("test-upper")("abc") == "ABC"
        with pytest.raises(ValueError):
            register_converter("test-upper")(lambda value: value)

    @pytest.mark.parametrize("reference", ["nope", "json:nope", "no_such_module_xyz:fn", "json:__name__"])
    def test_unresolvable(self, reference):
        with pytest.raises(UnknownConverterError):
            resolve_converter(reference)
