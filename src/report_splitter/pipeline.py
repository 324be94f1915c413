"""Core data models shared across the report splitter pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .field_mapping import FIELD_DOB, FIELD_NAME, FIELD_PATIENT_ID, IDENTITY_FIELDS


@dataclass(frozen=True)
class PageRecord:
    """One OCR'd page: field map and table grids keyed by a stable page index."""

    index: int
    confidence: float = 0.0
    fields: Mapping[str, Any] = field(default_factory=dict)
    tables: Sequence[Any] = field(default_factory=tuple)
    text: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PageRecord":
        """Build a page from a flattened JSON payload.

        ``fields`` may also be supplied as ``keyValuePairs`` and each table may be
        either a bare grid or an object with a ``rows`` grid.
        """
        if "index" not in data:
            raise ValueError("Page record requires an 'index'")
        index = int(data["index"])
        if index < 0:
            raise ValueError(f"Page index must be non-negative, got {index}")

        raw_fields = data.get("fields", data.get("keyValuePairs")) or {}
        fields: Dict[str, Any] = {}
        if isinstance(raw_fields, Mapping):
            for key, value in raw_fields.items():
                fields[str(key).strip().lower()] = value

        tables: List[Any] = []
        for table in data.get("tables") or []:
            if isinstance(table, Mapping):
                table = table.get("rows") or []
            tables.append(table)

        return cls(
            index=index,
            confidence=float(data.get("confidence") or 0.0),
            fields=fields,
            tables=tuple(tables),
            text=str(data.get("text") or ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "confidence": self.confidence,
            "fields": dict(self.fields),
            "tables": [list(table) if isinstance(table, (list, tuple)) else table for table in self.tables],
            "text": self.text,
        }


@dataclass(frozen=True)
class IdentityCandidate:
    """Normalized identity evidence found on a page."""

    name: Optional[str] = None
    dob: Optional[str] = None
    patient_id: Optional[str] = None

    def get(self, field_name: str) -> Optional[str]:
        if field_name == FIELD_NAME:
            return self.name
        if field_name == FIELD_DOB:
            return self.dob
        if field_name == FIELD_PATIENT_ID:
            return self.patient_id
        raise KeyError(f"Unknown identity field: {field_name}")

    @property
    def populated_fields(self) -> Tuple[str, ...]:
        return tuple(name for name in IDENTITY_FIELDS if self.get(name) is not None)

    @property
    def label(self) -> str:
        return self.name or self.patient_id or "Unknown Patient"

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {"name": self.name, "dob": self.dob, "patient_id": self.patient_id}


@dataclass(frozen=True)
class CompletenessSummary:
    """Quality summary attached to a group's representative identity."""

    completeness: float
    is_high_confidence: bool
    confidence: float
    threshold: float
    populated_fields: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "completeness": self.completeness,
            "is_high_confidence": self.is_high_confidence,
            "confidence": self.confidence,
            "threshold": self.threshold,
            "populated_fields": list(self.populated_fields),
        }


@dataclass(frozen=True)
class PatientGroup:
    """A contiguous run of pages believed to belong to one patient."""

    report_index: int
    pages: Tuple[PageRecord, ...]
    has_patient_data: bool
    identity: Optional[IdentityCandidate] = None
    identity_page_index: Optional[int] = None
    forced_split: bool = False

    @property
    def page_count(self) -> int:
        return len(self.pages)

    @property
    def first_page_index(self) -> int:
        return self.pages[0].index

    @property
    def last_page_index(self) -> int:
        return self.pages[-1].index

    @property
    def page_indices(self) -> List[int]:
        return [page.index for page in self.pages]

    @property
    def representative_page(self) -> PageRecord:
        """Page that supplied ``identity``, or the first page when none did."""
        if self.identity_page_index is not None:
            for page in self.pages:
                if page.index == self.identity_page_index:
                    return page
        return self.pages[0]

    @property
    def average_confidence(self) -> float:
        if not self.pages:
            return 0.0
        return sum(page.confidence for page in self.pages) / len(self.pages)


@dataclass(frozen=True)
class SegmentationDecision:
    """Structured record of how a single page was placed."""

    page_index: int
    report_index: int
    candidate: Optional[IdentityCandidate]
    different: bool
    basis: str
    split_before: bool = False
    anchor_seeded: bool = False
    forced_split_after: bool = False

    def describe(self) -> str:
        if self.split_before:
            action = f"new patient ({self.basis})"
        elif self.anchor_seeded:
            action = "first patient found"
        else:
            action = f"continuation ({self.basis})"
        if self.forced_split_after:
            action += ", forced split"
        who = self.candidate.label if self.candidate else "no identity"
        return f"page {self.page_index} -> report {self.report_index}: {action} [{who}]"


@dataclass
class SegmentationResult:
    """Groups emitted by one segmentation run plus its decision log."""

    groups: List[PatientGroup]
    decisions: List[SegmentationDecision] = field(default_factory=list)
    field_mapping_version: int = 1
    max_pages_per_patient: int = 10
    forced_split_policy: str = "reset"

    @property
    def total_pages(self) -> int:
        return sum(group.page_count for group in self.groups)

    @property
    def forced_splits(self) -> int:
        return sum(1 for group in self.groups if group.forced_split)


@dataclass
class ScoredReport:
    """A finalized group together with its completeness summary."""

    group: PatientGroup
    summary: CompletenessSummary


@dataclass
class SplitArtifact:
    """Represents a generated patient report and its metadata file."""

    report_index: int
    pdf_path: Optional[Path]
    metadata_path: Path
    pages: List[int]
    identity: Optional[IdentityCandidate]
    completeness: float
    is_high_confidence: bool
    forced_split: bool = False


@dataclass
class DocumentSplitResult:
    """Bundle of split artifacts and summary metadata for one document."""

    artifacts: List[SplitArtifact]
    global_metadata_path: Path
    source_pdf: Optional[Path] = None
    total_pages: int = 0
    reports_found: int = 0
    forced_splits: int = 0
    skipped_pages: List[int] = field(default_factory=list)
    decisions: List[SegmentationDecision] = field(default_factory=list)
    stage_durations: Dict[str, float] = field(default_factory=dict)


@dataclass
class BatchJobResult:
    """Outcome of one document in a batch run."""

    pages_path: Path
    pdf_path: Optional[Path]
    success: bool
    result: Optional[DocumentSplitResult] = None
    error: Optional[str] = None


@dataclass
class BatchResult:
    """Aggregated outcome of a batch run."""

    jobs: List[BatchJobResult] = field(default_factory=list)

    @property
    def total_files(self) -> int:
        return len(self.jobs)

    @property
    def successful(self) -> int:
        return sum(1 for job in self.jobs if job.success)

    @property
    def failed(self) -> int:
        return self.total_files - self.successful
