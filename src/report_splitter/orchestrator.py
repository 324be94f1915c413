"""High-level orchestrator wiring the report splitting pipeline."""

from __future__ import annotations

import time
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from config import Settings, load_settings
from .completeness import CompletenessScorer
from .document_splitter import DocumentSplitter
from .logging_utils import get_logger
from .pipeline import BatchJobResult, BatchResult, DocumentSplitResult, PageRecord
from .segmentation import SegmentationEngine
from .textract_parser import TextractPageParser

logger = get_logger(__name__)


class PipelineError(RuntimeError):
    """Top-level pipeline failure."""


class PipelineOrchestrator:
    """Run page parsing, segmentation, scoring and splitting for documents."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        parser: Optional[TextractPageParser] = None,
        engine: Optional[SegmentationEngine] = None,
        scorer: Optional[CompletenessScorer] = None,
        document_splitter: Optional[DocumentSplitter] = None,
    ):
        self.settings = settings or load_settings()
        self.settings.ensure_directories()

        self.parser = parser or TextractPageParser()
        self.engine = engine or SegmentationEngine(self.settings)
        self.scorer = scorer or CompletenessScorer(self.settings)
        self.document_splitter = document_splitter or DocumentSplitter(self.settings)

    def process_files(self, pages_path: Path, source_pdf: Optional[Path] = None) -> DocumentSplitResult:
        """Load a page payload file and run the pipeline on it."""
        pages_path = Path(pages_path)
        if not pages_path.exists():
            raise PipelineError(f"Page file not found: {pages_path}")
        if source_pdf is not None:
            self._validate_pdf(Path(source_pdf))

        stage_start = time.perf_counter()
        try:
            pages, skipped = self.parser.load_pages(pages_path)
        except Exception as exc:  # pylint: disable=broad-except
            logger.exception("Failed to load pages from %s", pages_path)
            raise PipelineError(str(exc)) from exc
        load_duration = time.perf_counter() - stage_start

        result = self.process_pages(pages, source_pdf)
        result.stage_durations = {"page_loading": load_duration, **result.stage_durations}
        result.skipped_pages = sorted(set(result.skipped_pages) | set(skipped))
        return result

    def process_pages(self, pages: Sequence[PageRecord], source_pdf: Optional[Path] = None) -> DocumentSplitResult:
        """Segment already-decoded pages and write the per-patient outputs."""
        logger.info("Starting pipeline for %s pages", len(pages))
        start = time.time()
        stage_timings: dict[str, float] = {}

        try:
            stage_start = time.perf_counter()
            segmentation = self.engine.segment(pages)
            stage_timings["segmentation"] = time.perf_counter() - stage_start
            logger.info("Found %s patient reports", len(segmentation.groups))

            stage_start = time.perf_counter()
            reports = self.scorer.score_groups(segmentation.groups)
            stage_timings["scoring"] = time.perf_counter() - stage_start

            stage_start = time.perf_counter()
            split_result = self.document_splitter.split(
                Path(source_pdf) if source_pdf is not None else None,
                reports,
            )
            stage_timings["document_splitting"] = time.perf_counter() - stage_start
        except Exception as exc:  # pylint: disable=broad-except
            logger.exception("Pipeline failed after %.2fs", time.time() - start)
            raise PipelineError(str(exc)) from exc

        split_result.decisions = segmentation.decisions
        split_result.stage_durations = stage_timings
        logger.info(
            "Pipeline finished in %.2fs (reports=%s, pages=%s, forced splits=%s)",
            time.time() - start,
            split_result.reports_found,
            split_result.total_pages,
            split_result.forced_splits,
        )
        return split_result

    def process_batch(self, jobs: Sequence[Tuple[Path, Optional[Path]]]) -> BatchResult:
        """Process several documents in order; a failed document never stops the batch."""
        if not jobs:
            raise PipelineError("At least one document is required for batch processing")

        logger.info("Starting batch processing of %s files", len(jobs))
        results: List[BatchJobResult] = []
        for position, (pages_path, pdf_path) in enumerate(jobs, start=1):
            logger.info("Processing file %s/%s: %s", position, len(jobs), pages_path)
            try:
                result = self.process_files(pages_path, pdf_path)
            except PipelineError as exc:
                logger.error("Failed to process %s: %s", pages_path, exc)
                results.append(
                    BatchJobResult(pages_path=Path(pages_path), pdf_path=pdf_path, success=False, error=str(exc))
                )
                continue
            results.append(
                BatchJobResult(pages_path=Path(pages_path), pdf_path=pdf_path, success=True, result=result)
            )

        batch = BatchResult(jobs=results)
        logger.info("Batch complete: %s/%s succeeded, %s failed", batch.successful, batch.total_files, batch.failed)
        return batch

    def _validate_pdf(self, pdf_path: Path) -> None:
        if not pdf_path.exists():
            raise PipelineError(f"PDF not found: {pdf_path}")
        if pdf_path.suffix.lower() not in self.settings.supported_formats:
            raise PipelineError(
                f"Unsupported file format: {pdf_path.suffix}. "
                f"Supported formats: {', '.join(self.settings.supported_formats)}"
            )
        if pdf_path.stat().st_size == 0:
            raise PipelineError(f"File is empty: {pdf_path}")
