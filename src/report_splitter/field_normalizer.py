"""Canonicalize raw OCR field values and reject implausible ones."""

from __future__ import annotations

import re
from typing import Any, Optional

from .field_mapping import FIELD_DOB, FIELD_NAME, FIELD_PATIENT_ID

_NAME_STRIP = re.compile(r"[^\w\s-]", re.ASCII)
_ID_STRIP = re.compile(r"[^\w]", re.ASCII)
_DIGIT = re.compile(r"\d", re.ASCII)
_ALL_DIGITS = re.compile(r"^\d+$", re.ASCII)

MIN_NAME_LENGTH = 2
MIN_DOB_LENGTH = 6
MIN_PATIENT_ID_LENGTH = 3


def normalize_field(raw_value: Any, field_kind: str) -> Optional[str]:
    """Return the canonical value for ``field_kind`` or ``None`` when it is not usable.

    Never raises: non-string input and unknown field kinds are treated as invalid.
    """
    if not isinstance(raw_value, str):
        return None
    value = raw_value.strip()

    if field_kind == FIELD_NAME:
        value = _NAME_STRIP.sub("", value).strip()
        if len(value) < MIN_NAME_LENGTH or _ALL_DIGITS.match(value):
            return None
        return value

    if field_kind == FIELD_DOB:
        # Plausibility only; calendar validation is left to consumers.
        if not _DIGIT.search(value) or len(value) < MIN_DOB_LENGTH:
            return None
        return value

    if field_kind == FIELD_PATIENT_ID:
        value = _ID_STRIP.sub("", value)
        if len(value) < MIN_PATIENT_ID_LENGTH:
            return None
        return value

    return None
