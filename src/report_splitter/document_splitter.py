"""Create patient-specific PDFs and metadata from segmented page groups."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from PyPDF2 import PdfReader, PdfWriter
import yaml

from config import Settings
from .logging_utils import get_logger
from .pipeline import DocumentSplitResult, ScoredReport, SplitArtifact
from .report_metadata import build_report_metadata, report_filename

logger = get_logger(__name__)


class DocumentSplitter:
    """Materialize one output document per patient group."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def split(
        self,
        pdf_path: Optional[Path],
        reports: Sequence[ScoredReport],
        *,
        processed_at: Optional[datetime] = None,
    ) -> DocumentSplitResult:
        """Write report PDFs (when a source PDF is given) and their metadata files."""
        processed_at = processed_at or datetime.now()
        reader: Optional[PdfReader] = None
        if pdf_path is not None:
            pdf_path = pdf_path.resolve()
            if not pdf_path.exists():
                raise FileNotFoundError(f"Source PDF not found: {pdf_path}")
            reader = PdfReader(str(pdf_path))

        output_dir = self.settings.split_output_path
        logger.info("Writing %s patient reports to %s", len(reports), output_dir)

        artifacts: List[SplitArtifact] = []
        skipped_pages: List[int] = []
        for report in reports:
            artifacts.append(
                self._write_report(report, reader, output_dir, pdf_path, processed_at, skipped_pages)
            )

        global_metadata_path = self._write_global_metadata(
            output_dir / "split_metadata",
            pdf_path,
            artifacts,
            reports,
            skipped_pages,
        )

        return DocumentSplitResult(
            artifacts=artifacts,
            global_metadata_path=global_metadata_path,
            source_pdf=pdf_path,
            total_pages=sum(report.group.page_count for report in reports),
            reports_found=len(reports),
            forced_splits=sum(1 for report in reports if report.group.forced_split),
            skipped_pages=skipped_pages,
        )

    def _write_report(
        self,
        report: ScoredReport,
        reader: Optional[PdfReader],
        output_dir: Path,
        source_pdf: Optional[Path],
        processed_at: datetime,
        skipped_pages: List[int],
    ) -> SplitArtifact:
        group = report.group
        filename = report_filename(group.identity, group.report_index, processed_at.date())

        pdf_output: Optional[Path] = None
        if reader is not None:
            writer = PdfWriter()
            added = 0
            for page in group.pages:
                if page.index >= len(reader.pages):
                    logger.warning("Page %s exceeds source PDF length; skipping", page.index)
                    skipped_pages.append(page.index)
                    continue
                writer.add_page(reader.pages[page.index])
                added += 1
            if added:
                pdf_output = output_dir / filename
                with pdf_output.open("wb") as handle:
                    writer.write(handle)
            else:
                logger.warning("Report %s has no pages inside the source PDF", group.report_index)

        metadata_format = self._metadata_format()
        extension = ".yaml" if metadata_format == "yaml" else ".json"
        metadata_output = output_dir / f"{Path(filename).stem}{extension}"
        metadata = {
            "report_index": group.report_index,
            "source_pdf": str(source_pdf) if source_pdf else None,
            "output_pdf": str(pdf_output) if pdf_output else None,
            "pages": group.page_indices,
            "average_confidence": round(group.average_confidence, 2),
            "identity": group.identity.to_dict() if group.identity else None,
            "completeness": report.summary.to_dict(),
            "metadata": build_report_metadata(group, report.summary, processed_at),
        }
        self._dump(metadata, metadata_output, metadata_format)

        logger.info(
            "Wrote report %s: %s pages -> %s",
            group.report_index,
            group.page_count,
            pdf_output or metadata_output,
        )

        return SplitArtifact(
            report_index=group.report_index,
            pdf_path=pdf_output,
            metadata_path=metadata_output,
            pages=group.page_indices,
            identity=group.identity,
            completeness=report.summary.completeness,
            is_high_confidence=report.summary.is_high_confidence,
            forced_split=group.forced_split,
        )

    def _write_global_metadata(
        self,
        output_stub: Path,
        source_pdf: Optional[Path],
        artifacts: Iterable[SplitArtifact],
        reports: Sequence[ScoredReport],
        skipped_pages: List[int],
    ) -> Path:
        metadata_format = self._metadata_format()
        extension = ".yaml" if metadata_format == "yaml" else ".json"
        output_path = output_stub.with_suffix(extension)

        data = {
            "source_pdf": str(source_pdf) if source_pdf else None,
            "total_pages": sum(report.group.page_count for report in reports),
            "reports_found": len(reports),
            "forced_splits": sum(1 for report in reports if report.group.forced_split),
            "skipped_pages": skipped_pages,
            "artifacts": [
                {
                    "report_index": artifact.report_index,
                    "pdf_path": str(artifact.pdf_path) if artifact.pdf_path else None,
                    "metadata_path": str(artifact.metadata_path),
                    "pages": artifact.pages,
                    "patient": artifact.identity.to_dict() if artifact.identity else None,
                    "completeness": artifact.completeness,
                    "is_high_confidence": artifact.is_high_confidence,
                }
                for artifact in artifacts
            ],
        }
        self._dump(data, output_path, metadata_format)
        logger.info("Global split metadata written to %s", output_path)
        return output_path

    def _metadata_format(self) -> str:
        metadata_format = (self.settings.split_metadata_format or "json").lower()
        if metadata_format not in {"json", "yaml"}:
            logger.warning("Unsupported metadata format '%s'; defaulting to JSON.", metadata_format)
            metadata_format = "json"
        return metadata_format

    @staticmethod
    def _dump(data: Dict[str, Any], path: Path, metadata_format: str) -> None:
        with path.open("w", encoding="utf-8") as handle:
            if metadata_format == "yaml":
                yaml.safe_dump(data, handle, sort_keys=False)
            else:
                json.dump(data, handle, indent=2)
