#!/usr/bin/env python
"""Inspect a page payload file by printing the identity found on each page."""

from __future__ import annotations

import argparse
import statistics
from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from config import load_settings
from src.report_splitter.field_mapping import FieldMapping
from src.report_splitter.identity_extractor import IdentityExtractor
from src.report_splitter.logging_utils import configure_logging, get_logger
from src.report_splitter.textract_parser import TextractPageParser, TextractParseError


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Inspect per-page identity extraction.")
    parser.add_argument("--input", type=Path, required=True, help="Path to the page JSON file to inspect.")
    parser.add_argument(
        "--field-aliases",
        type=Path,
        default=None,
        help="YAML file of aliases merged over the configured mapping.",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    settings = load_settings()
    configure_logging(settings, force=True)
    logger = get_logger("inspect_pages")

    mapping = settings.field_mapping()
    if args.field_aliases:
        mapping = mapping.merge(FieldMapping.load_overrides(args.field_aliases))

    try:
        pages, skipped = TextractPageParser().load_pages(args.input)
    except TextractParseError as exc:
        logger.error("Could not read pages: %s", exc)
        return 1

    logger.info("Loaded %s pages from %s (%s undecodable)", len(pages), args.input, len(skipped))
    if pages:
        logger.info("Average confidence: %.2f", statistics.mean(page.confidence for page in pages))

    extractor = IdentityExtractor(mapping)
    for page in pages:
        candidate = extractor.extract(page)
        logger.info(
            "Page %s: fields=%s tables=%s identity=%s",
            page.index,
            len(page.fields),
            len(page.tables),
            candidate.to_dict() if candidate else None,
        )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
