"""Completeness and OCR-confidence scoring for finalized patient groups."""

from __future__ import annotations

from typing import List, Optional, Sequence

from config import Settings
from .field_mapping import IDENTITY_FIELDS
from .pipeline import CompletenessSummary, IdentityCandidate, PatientGroup, ScoredReport


def score_completeness(
    identity: Optional[IdentityCandidate],
    ocr_confidence: float,
    threshold: float,
) -> CompletenessSummary:
    populated = identity.populated_fields if identity is not None else ()
    return CompletenessSummary(
        completeness=len(populated) / len(IDENTITY_FIELDS),
        is_high_confidence=ocr_confidence >= threshold,
        confidence=ocr_confidence,
        threshold=threshold,
        populated_fields=populated,
    )


class CompletenessScorer:
    """Annotate groups with completeness against the configured confidence threshold."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or Settings()

    def score(
        self,
        identity: Optional[IdentityCandidate],
        ocr_confidence: float,
        threshold: Optional[float] = None,
    ) -> CompletenessSummary:
        if threshold is None:
            threshold = self.settings.confidence_threshold
        return score_completeness(identity, ocr_confidence, threshold)

    def score_group(self, group: PatientGroup) -> CompletenessSummary:
        """Score the group's identity using the OCR confidence of the page it came from."""
        return self.score(group.identity, group.representative_page.confidence)

    def score_groups(self, groups: Sequence[PatientGroup]) -> List[ScoredReport]:
        return [ScoredReport(group=group, summary=self.score_group(group)) for group in groups]
