"""Tests for the immutable field alias mapping."""

from __future__ import annotations

import dataclasses

import pytest

from src.report_splitter.field_mapping import DEFAULT_FIELD_ALIASES, FieldMapping


def test_default_mapping_preserves_alias_order():
    mapping = FieldMapping.default()
    assert mapping.fields() == ("name", "dob", "patient_id")
    assert mapping.aliases_for("patient_id") == DEFAULT_FIELD_ALIASES["patient_id"]
    assert mapping.aliases_for("name")[0] == "patient name"


def test_merge_returns_new_version_and_leaves_original_untouched():
    original = FieldMapping.default()
    extended = original.as_dict()["name"] + ["Full Patient Name", "pt name"]

    merged = original.merge({"name": extended})

    assert merged is not original
    assert merged.version == original.version + 1
    assert merged.aliases_for("name")[-2:] == ("full patient name", "pt name")
    assert "pt name" not in original.aliases_for("name")
    assert merged.aliases_for("dob") == original.aliases_for("dob")


def test_replace_requires_every_field():
    mapping = FieldMapping.default()
    with pytest.raises(ValueError, match="missing aliases"):
        mapping.replace({"name": ["name"]})

    replaced = mapping.replace({"name": ["nm"], "dob": ["born"], "patientId": ["ident"]})
    assert replaced.aliases_for("patient_id") == ("ident",)
    assert replaced.version == 2


def test_unknown_field_rejected():
    with pytest.raises(ValueError, match="Unknown identity field"):
        FieldMapping.default().merge({"phone": ["tel"]})


def test_empty_alias_list_rejected():
    with pytest.raises(ValueError, match="non-empty"):
        FieldMapping.default().merge({"dob": ["  "]})


def test_mapping_is_frozen():
    mapping = FieldMapping.default()
    with pytest.raises(dataclasses.FrozenInstanceError):
        mapping.version = 5  # type: ignore[misc]


def test_as_dict_is_detached_copy():
    mapping = FieldMapping.default()
    copy = mapping.as_dict()
    copy["name"].append("nickname")
    assert "nickname" not in mapping.aliases_for("name")


def test_load_overrides_from_yaml(tmp_path):
    path = tmp_path / "aliases.yaml"
    path.write_text("patientId:\n  - member id\n  - MRN\n")

    merged = FieldMapping.default().merge(FieldMapping.load_overrides(path))

    assert merged.aliases_for("patient_id") == ("member id", "mrn")


def test_load_overrides_rejects_non_mapping(tmp_path):
    path = tmp_path / "aliases.yaml"
    path.write_text("- name\n- dob\n")
    with pytest.raises(ValueError):
        FieldMapping.load_overrides(path)


def test_load_overrides_rejects_scalar_aliases(tmp_path):
    path = tmp_path / "aliases.yaml"
    path.write_text("name: 5\n")
    with pytest.raises(ValueError, match="string or a list of strings"):
        FieldMapping.load_overrides(path)


def test_load_overrides_rejects_invalid_yaml(tmp_path):
    path = tmp_path / "aliases.yaml"
    path.write_text("name: [unclosed\n")
    with pytest.raises(ValueError, match="not valid YAML"):
        FieldMapping.load_overrides(path)


def test_load_overrides_accepts_single_string(tmp_path):
    path = tmp_path / "aliases.yaml"
    path.write_text("dob: born on\n")
    assert FieldMapping.load_overrides(path) == {"dob": ["born on"]}


def test_merge_rejects_non_list_aliases():
    with pytest.raises(ValueError, match="non-empty"):
        FieldMapping.default().merge({"name": 5})  # type: ignore[dict-item]
