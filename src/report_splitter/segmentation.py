"""Single-pass patient boundary detection over an ordered page stream."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Sequence, Tuple

from config import FORCED_SPLIT_POLICIES, Settings
from .field_mapping import FieldMapping
from .identity_extractor import IdentityExtractor
from .logging_utils import get_logger
from .pipeline import (
    IdentityCandidate,
    PageRecord,
    PatientGroup,
    SegmentationDecision,
    SegmentationResult,
)

logger = get_logger(__name__)

BASIS_NO_ANCHOR = "no_anchor"
BASIS_NO_EVIDENCE = "no_evidence"
BASIS_PATIENT_ID = "patient_id"
BASIS_NAME = "name"
BASIS_DOB = "dob"
BASIS_INSUFFICIENT_OVERLAP = "insufficient_overlap"


class SegmentationError(RuntimeError):
    """Base class for hard segmentation failures."""


class InputError(SegmentationError):
    """Raised when the page sequence violates the caller contract."""


class NoViableGroupsError(SegmentationError):
    """Raised when no non-empty patient group survives the scan."""


def is_different_patient(
    anchor: Optional[IdentityCandidate],
    candidate: Optional[IdentityCandidate],
) -> Tuple[bool, str]:
    """Decide whether ``candidate`` starts a new patient relative to ``anchor``.

    Returns the decision together with the rule that produced it. Rules are
    tried in order: identifier, then name, then date of birth; a page without
    evidence, or without a field shared with the anchor, continues the
    current patient.
    """
    if anchor is None:
        return candidate is not None, BASIS_NO_ANCHOR
    if candidate is None:
        return False, BASIS_NO_EVIDENCE
    if anchor.patient_id is not None and candidate.patient_id is not None:
        return anchor.patient_id != candidate.patient_id, BASIS_PATIENT_ID
    if anchor.name is not None and candidate.name is not None:
        return anchor.name != candidate.name, BASIS_NAME
    if anchor.dob is not None and candidate.dob is not None:
        return anchor.dob != candidate.dob, BASIS_DOB
    return False, BASIS_INSUFFICIENT_OVERLAP


@dataclass
class _RunState:
    anchor: Optional[IdentityCandidate] = None
    pages: List[PageRecord] = field(default_factory=list)
    candidates: List[Optional[IdentityCandidate]] = field(default_factory=list)
    groups: List[PatientGroup] = field(default_factory=list)


class SegmentationEngine:
    """Group consecutive pages into patient reports using per-page identity evidence."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        field_mapping: Optional[FieldMapping] = None,
        max_pages_per_patient: Optional[int] = None,
        forced_split_policy: Optional[str] = None,
    ):
        self.settings = settings or Settings()
        self.field_mapping = field_mapping if field_mapping is not None else self.settings.field_mapping()
        if max_pages_per_patient is None:
            max_pages_per_patient = self.settings.max_pages_per_patient
        if max_pages_per_patient < 1:
            raise ValueError("max_pages_per_patient must be a positive integer")
        self.max_pages_per_patient = max_pages_per_patient
        if forced_split_policy is None:
            forced_split_policy = self.settings.forced_split_policy
        if forced_split_policy not in FORCED_SPLIT_POLICIES:
            raise ValueError(f"Unsupported forced split policy '{forced_split_policy}'")
        self.forced_split_policy = forced_split_policy

    def set_field_mapping(self, mapping: FieldMapping) -> None:
        """Use ``mapping`` for subsequent runs; a run in progress keeps its snapshot."""
        self.field_mapping = mapping

    def merge_field_mapping(self, custom: Mapping[str, Sequence[str]]) -> FieldMapping:
        self.field_mapping = self.field_mapping.merge(custom)
        return self.field_mapping

    def segment(self, pages: Sequence[PageRecord]) -> SegmentationResult:
        if not pages:
            raise InputError("No page data provided for splitting")

        mapping = self.field_mapping
        extractor = IdentityExtractor(mapping)
        state = _RunState()
        decisions: List[SegmentationDecision] = []
        previous_index: Optional[int] = None

        for page in pages:
            if previous_index is not None and page.index <= previous_index:
                raise InputError(
                    f"Pages must be in strictly ascending index order (page {page.index} after {previous_index})"
                )
            previous_index = page.index

            candidate = extractor.extract(page)
            different, basis = is_different_patient(state.anchor, candidate)
            split_before = False
            anchor_seeded = False

            if different and state.pages:
                logger.info("New patient detected at page %s (%s), splitting report", page.index, basis)
                self._finalize(state)
                state.anchor = candidate
                split_before = True
            elif different:
                state.anchor = candidate
                anchor_seeded = True
                logger.info("First patient found at page %s: %s", page.index, candidate.label)

            report_index = len(state.groups)
            state.pages.append(page)
            state.candidates.append(candidate)

            forced = len(state.pages) >= self.max_pages_per_patient
            if forced:
                logger.warning(
                    "Report exceeded max pages (%s), forcing split at page %s",
                    self.max_pages_per_patient,
                    page.index,
                )
                self._finalize(state, forced=True)
                if self.forced_split_policy == "reset":
                    state.anchor = None

            decisions.append(
                SegmentationDecision(
                    page_index=page.index,
                    report_index=report_index,
                    candidate=candidate,
                    different=different,
                    basis=basis,
                    split_before=split_before,
                    anchor_seeded=anchor_seeded,
                    forced_split_after=forced,
                )
            )

        if state.pages:
            self._finalize(state)

        groups = self._validate_groups(state.groups)
        return SegmentationResult(
            groups=groups,
            decisions=decisions,
            field_mapping_version=mapping.version,
            max_pages_per_patient=self.max_pages_per_patient,
            forced_split_policy=self.forced_split_policy,
        )

    def _finalize(self, state: _RunState, *, forced: bool = False) -> None:
        identity: Optional[IdentityCandidate] = None
        identity_page_index: Optional[int] = None
        for page, candidate in zip(state.pages, state.candidates):
            if candidate is not None:
                identity = candidate
                identity_page_index = page.index
                break

        state.groups.append(
            PatientGroup(
                report_index=len(state.groups),
                pages=tuple(state.pages),
                has_patient_data=identity is not None,
                identity=identity,
                identity_page_index=identity_page_index,
                forced_split=forced,
            )
        )
        state.pages = []
        state.candidates = []

    def _validate_groups(self, groups: List[PatientGroup]) -> List[PatientGroup]:
        valid: List[PatientGroup] = []
        for group in groups:
            if group.page_count == 0:
                logger.warning("Report %s has no pages, skipping", group.report_index)
                continue
            valid.append(group)

        if not valid:
            raise NoViableGroupsError("No valid reports found after splitting")

        logger.info("Document split into %s patient reports", len(valid))
        for group in valid:
            logger.info(
                "Report %s: %s pages (%s-%s) - %s",
                group.report_index,
                group.page_count,
                group.first_page_index,
                group.last_page_index,
                group.identity.label if group.identity else "Unknown Patient",
            )
        return valid


def segment_pages(
    pages: Sequence[PageRecord],
    settings: Optional[Settings] = None,
    **overrides,
) -> SegmentationResult:
    """Run a one-off segmentation with an engine built from ``settings``."""
    return SegmentationEngine(settings, **overrides).segment(pages)
