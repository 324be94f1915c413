"""Immutable alias configuration for the identity fields probed on each page."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, List, Mapping, Sequence, Tuple

import yaml

FIELD_NAME = "name"
FIELD_DOB = "dob"
FIELD_PATIENT_ID = "patient_id"
IDENTITY_FIELDS: Tuple[str, ...] = (FIELD_NAME, FIELD_DOB, FIELD_PATIENT_ID)

# Accept the camelCase spelling used by upstream OCR tooling in override files.
_FIELD_SYNONYMS = {"patientid": FIELD_PATIENT_ID, "patient_id": FIELD_PATIENT_ID}

DEFAULT_FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    FIELD_NAME: ("patient name", "name", "patient", "full name", "patient full name"),
    FIELD_DOB: ("dob", "date of birth", "birth date", "birthdate", "patient dob"),
    FIELD_PATIENT_ID: (
        "patient id",
        "id",
        "patient #",
        "patient number",
        "mrn",
        "medical record number",
        "account",
        "accession",
        "medical record no",
        "patient identifier",
        "chart number",
    ),
}


@dataclass(frozen=True)
class FieldMapping:
    """Ordered alias lists per identity field.

    Instances never change. ``merge`` and ``replace`` return a new mapping with
    a bumped ``version`` so a segmentation run can hold on to the snapshot it
    started with.
    """

    entries: Tuple[Tuple[str, Tuple[str, ...]], ...]
    version: int = 1

    @classmethod
    def default(cls) -> "FieldMapping":
        return cls.from_dict(DEFAULT_FIELD_ALIASES)

    @classmethod
    def from_dict(cls, mapping: Mapping[str, Sequence[str]], *, version: int = 1) -> "FieldMapping":
        normalized = _normalize_mapping(mapping)
        missing = [field for field in IDENTITY_FIELDS if field not in normalized]
        if missing:
            raise ValueError(f"Field mapping is missing aliases for: {', '.join(missing)}")
        entries = tuple((field, normalized[field]) for field in IDENTITY_FIELDS)
        return cls(entries=entries, version=version)

    @staticmethod
    def load_overrides(path: Path) -> Dict[str, List[str]]:
        """Read a YAML document of ``field: [alias, ...]`` overrides."""
        with Path(path).open("r", encoding="utf-8") as handle:
            try:
                data = yaml.safe_load(handle) or {}
            except yaml.YAMLError as exc:
                raise ValueError(f"Field alias file {path} is not valid YAML: {exc}") from exc
        if not isinstance(data, dict):
            raise ValueError(f"Field alias file {path} must contain a mapping of field names to aliases")

        overrides: Dict[str, List[str]] = {}
        for field, aliases in data.items():
            if isinstance(aliases, str):
                aliases = [aliases]
            if not isinstance(aliases, list):
                raise ValueError(f"Aliases for '{field}' in {path} must be a string or a list of strings")
            overrides[str(field)] = aliases
        return overrides

    def aliases_for(self, field: str) -> Tuple[str, ...]:
        for name, aliases in self.entries:
            if name == field:
                return aliases
        raise KeyError(f"Unknown identity field: {field}")

    def fields(self) -> Tuple[str, ...]:
        return tuple(name for name, _ in self.entries)

    def items(self) -> Iterator[Tuple[str, Tuple[str, ...]]]:
        return iter(self.entries)

    def as_dict(self) -> Dict[str, List[str]]:
        """Return a detached copy that callers may edit and pass to ``merge``."""
        return {name: list(aliases) for name, aliases in self.entries}

    def merge(self, custom: Mapping[str, Sequence[str]]) -> "FieldMapping":
        """Return a new mapping where each field named in ``custom`` takes the given aliases."""
        updated = dict(self.entries)
        updated.update(_normalize_mapping(custom))
        return FieldMapping.from_dict(updated, version=self.version + 1)

    def replace(self, mapping: Mapping[str, Sequence[str]]) -> "FieldMapping":
        """Return a new mapping built only from ``mapping``."""
        return FieldMapping.from_dict(mapping, version=self.version + 1)


def _normalize_mapping(mapping: Mapping[str, Sequence[str]]) -> Dict[str, Tuple[str, ...]]:
    normalized: Dict[str, Tuple[str, ...]] = {}
    for raw_field, aliases in mapping.items():
        field = _canonical_field(raw_field)
        if isinstance(aliases, str):
            aliases = [aliases]
        if not isinstance(aliases, (list, tuple)):
            raise ValueError(f"Aliases for field '{field}' must be a non-empty list of strings")
        cleaned: List[str] = []
        for alias in aliases:
            if not isinstance(alias, str) or not alias.strip():
                continue
            lowered = alias.strip().lower()
            if lowered not in cleaned:
                cleaned.append(lowered)
        if not cleaned:
            raise ValueError(f"Aliases for field '{field}' must be a non-empty list of strings")
        normalized[field] = tuple(cleaned)
    return normalized


def _canonical_field(raw_field: str) -> str:
    key = str(raw_field).strip()
    if key in IDENTITY_FIELDS:
        return key
    synonym = _FIELD_SYNONYMS.get(key.lower())
    if synonym:
        return synonym
    raise ValueError(f"Unknown identity field '{raw_field}'; expected one of {', '.join(IDENTITY_FIELDS)}")
