"""Expose report splitter core modules."""

from .pipeline import (
    PageRecord,
    IdentityCandidate,
    PatientGroup,
    CompletenessSummary,
    SegmentationDecision,
    SegmentationResult,
    ScoredReport,
    SplitArtifact,
    DocumentSplitResult,
    BatchJobResult,
    BatchResult,
)
from .field_mapping import FieldMapping, DEFAULT_FIELD_ALIASES, IDENTITY_FIELDS
from .field_normalizer import normalize_field
from .identity_extractor import IdentityExtractor
from .segmentation import (
    SegmentationEngine,
    SegmentationError,
    InputError,
    NoViableGroupsError,
    is_different_patient,
    segment_pages,
)
from .completeness import CompletenessScorer, score_completeness
from .textract_parser import TextractPageParser, TextractParseError, load_pages
from .report_metadata import build_report_metadata, report_filename
from .document_splitter import DocumentSplitter
from .orchestrator import PipelineOrchestrator, PipelineError

__all__ = [
    "PageRecord",
    "IdentityCandidate",
    "PatientGroup",
    "CompletenessSummary",
    "SegmentationDecision",
    "SegmentationResult",
    "ScoredReport",
    "SplitArtifact",
    "DocumentSplitResult",
    "BatchJobResult",
    "BatchResult",
    "FieldMapping",
    "DEFAULT_FIELD_ALIASES",
    "IDENTITY_FIELDS",
    "normalize_field",
    "IdentityExtractor",
    "SegmentationEngine",
    "SegmentationError",
    "InputError",
    "NoViableGroupsError",
    "is_different_patient",
    "segment_pages",
    "CompletenessScorer",
    "score_completeness",
    "TextractPageParser",
    "TextractParseError",
    "load_pages",
    "build_report_metadata",
    "report_filename",
    "DocumentSplitter",
    "PipelineOrchestrator",
    "PipelineError",
]
