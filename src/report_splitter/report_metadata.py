"""Filenames and flat metadata records for emitted patient reports."""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any, Dict, Optional

from .pipeline import CompletenessSummary, IdentityCandidate, PatientGroup

EXTRACTION_METHOD = "textract_structured"
UNKNOWN = "Unknown"
MAX_SAFE_NAME_LENGTH = 50

_UNSAFE_NAME_CHARS = re.compile(r"[^\w\s-]")
_WHITESPACE = re.compile(r"\s+")
_NON_PRINTABLE_ASCII = re.compile(r"[^\x20-\x7E]")


def report_filename(
    identity: Optional[IdentityCandidate],
    report_index: int,
    processed_date: Optional[date] = None,
) -> str:
    processed_date = processed_date or date.today()
    name = identity.name if identity and identity.name else f"{UNKNOWN}-{report_index}"
    safe_name = _WHITESPACE.sub("_", _UNSAFE_NAME_CHARS.sub("", name))[:MAX_SAFE_NAME_LENGTH]
    patient_id = f"_{identity.patient_id}" if identity and identity.patient_id else ""
    return f"{safe_name}{patient_id}_{processed_date.isoformat()}_{report_index}.pdf"


def clean_metadata_value(value: Any) -> str:
    """Render ``value`` as printable ASCII; missing values become ``Unknown``."""
    if value is None:
        return UNKNOWN
    if isinstance(value, bool):
        value = str(value).lower()
    return _NON_PRINTABLE_ASCII.sub("", str(value))


def build_report_metadata(
    group: PatientGroup,
    summary: CompletenessSummary,
    processed_at: Optional[datetime] = None,
) -> Dict[str, str]:
    processed_at = processed_at or datetime.now()
    identity = group.identity
    return {
        "patient_name": clean_metadata_value(identity.name if identity else None),
        "date_of_birth": clean_metadata_value(identity.dob if identity else None),
        "patient_id": clean_metadata_value(identity.patient_id if identity else None),
        "page_count": clean_metadata_value(group.page_count),
        "first_page_index": clean_metadata_value(group.first_page_index),
        "last_page_index": clean_metadata_value(group.last_page_index),
        "processed_date": processed_at.isoformat(),
        "extracted_from": f"page_{group.representative_page.index}",
        "extraction_method": EXTRACTION_METHOD,
        "confidence": f"{summary.confidence:.1f}",
        "is_high_confidence": clean_metadata_value(summary.is_high_confidence),
        "completeness": f"{summary.completeness:.2f}",
        "has_patient_data": clean_metadata_value(group.has_patient_data),
        "forced_split": clean_metadata_value(group.forced_split),
    }
