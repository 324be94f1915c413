"""Command-line interface entry point for the patient report splitter."""

from __future__ import annotations

import argparse
from pathlib import Path
import sys

from config import load_settings
from src.report_splitter.logging_utils import configure_logging, get_logger
from src.report_splitter.orchestrator import PipelineOrchestrator, PipelineError


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="report-splitter",
        description="Split a multi-patient scanned report into one document per patient.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override the configured log level (default comes from REPORT_SPLITTER_LOG_LEVEL).",
    )
    parser.add_argument("--show-settings", action="store_true", help="Print runtime settings and exit.")
    parser.add_argument(
        "-p",
        "--pages",
        help="JSON file with per-page Textract responses or flattened page records.",
    )
    parser.add_argument("--pdf", help="Source PDF to split; without it only metadata is written.")
    parser.add_argument(
        "-o",
        "--output",
        help="Optional override for the split output directory (defaults to settings).",
    )
    parser.add_argument("--max-pages", type=int, default=None, help="Maximum pages per patient report.")
    parser.add_argument(
        "--field-aliases",
        help="YAML file of field aliases merged over the defaults.",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    settings = load_settings()

    if args.log_level:
        settings.log_level = args.log_level

    configure_logging(settings, force=True)
    logger = get_logger(__name__)
    logger.info("Report splitter CLI ready.")

    if args.show_settings:
        logger.info("Active settings: %s", settings.model_dump())
        if not args.pages:
            return 0

    if args.output:
        settings.split_output_dir = args.output
    if args.max_pages is not None:
        if args.max_pages < 1:
            logger.error("--max-pages must be a positive integer.")
            return 1
        settings.max_pages_per_patient = args.max_pages
    if args.field_aliases:
        settings.field_aliases_path = Path(args.field_aliases)
    settings.ensure_directories()

    if not args.pages:
        logger.error("No page file provided. Use --pages to specify one.")
        return 1

    try:
        orchestrator = PipelineOrchestrator(settings)
        result = orchestrator.process_files(Path(args.pages), Path(args.pdf) if args.pdf else None)
    except (PipelineError, ValueError, OSError) as exc:
        logger.error("Pipeline failed: %s", exc)
        return 2

    logger.info("Global metadata: %s", result.global_metadata_path)
    logger.info("Reports found: %s (forced splits: %s)", result.reports_found, result.forced_splits)
    if result.stage_durations:
        for stage, duration in result.stage_durations.items():
            logger.info("Stage %s took %.2fs", stage, duration)
    for artifact in result.artifacts:
        patient = artifact.identity.label if artifact.identity else "Unknown Patient"
        logger.info(
            "Report %s: %s -> %s pages=%s completeness=%.0f%%",
            artifact.report_index,
            patient,
            artifact.pdf_path or artifact.metadata_path,
            artifact.pages,
            artifact.completeness * 100,
        )
    if result.skipped_pages:
        logger.warning("Skipped pages: %s", result.skipped_pages)
    return 0


if __name__ == "__main__":
    sys.exit(main())
