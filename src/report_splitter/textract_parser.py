"""Convert Textract AnalyzeDocument responses into page records."""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Dict, List, Mapping, Sequence, Tuple

from .logging_utils import get_logger
from .pipeline import PageRecord

logger = get_logger(__name__)

_TRAILING_KEY_PUNCTUATION = re.compile(r"[:\s]+$")


class TextractParseError(ValueError):
    """Raised when a page payload file cannot be interpreted at all."""


class TextractPageParser:
    """Flatten FORMS and TABLES blocks of one response into a ``PageRecord``."""

    def parse(self, response: Mapping[str, Any], index: int) -> PageRecord:
        blocks = response.get("Blocks")
        if not isinstance(blocks, list):
            raise TextractParseError(f"Page {index}: response has no 'Blocks' list")
        by_id = {block.get("Id"): block for block in blocks if isinstance(block, Mapping)}
        return PageRecord(
            index=index,
            confidence=self._average_confidence(blocks),
            fields=self._key_value_pairs(blocks, by_id),
            tables=tuple(self._tables(blocks, by_id)),
            text=self._text(blocks),
        )

    def parse_document(self, payload: Any) -> Tuple[List[PageRecord], List[int]]:
        """Parse every page entry, dropping the ones that cannot be decoded.

        Returns the decoded pages and the positions of dropped entries.
        """
        if isinstance(payload, Mapping) and "pages" in payload:
            payload = payload["pages"]
        elif isinstance(payload, Mapping) and "Blocks" in payload:
            payload = [payload]
        if not isinstance(payload, list):
            raise TextractParseError("Expected a list of pages or an object with a 'pages' list")

        pages: List[PageRecord] = []
        skipped: List[int] = []
        for position, entry in enumerate(payload):
            try:
                pages.append(self._parse_entry(entry, position))
            except (TextractParseError, TypeError, ValueError) as exc:
                logger.warning("Failed to decode page %s: %s", position, exc)
                skipped.append(position)

        logger.info("Decoded %s pages (%s skipped)", len(pages), len(skipped))
        return pages, skipped

    def load_pages(self, path: Path) -> Tuple[List[PageRecord], List[int]]:
        path = Path(path)
        try:
            with path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except json.JSONDecodeError as exc:
            raise TextractParseError(f"Page file {path} is not valid JSON: {exc}") from exc
        return self.parse_document(payload)

    def _parse_entry(self, entry: Any, position: int) -> PageRecord:
        if not isinstance(entry, Mapping):
            raise TextractParseError(f"entry is a {type(entry).__name__}, not an object")
        index = int(entry.get("index", position))
        if "Blocks" in entry:
            return self.parse(entry, index)
        if isinstance(entry.get("response"), Mapping):
            return self.parse(entry["response"], index)
        return PageRecord.from_dict({**entry, "index": index})

    @staticmethod
    def _average_confidence(blocks: Sequence[Any]) -> float:
        scores = [
            float(block["Confidence"])
            for block in blocks
            if isinstance(block, Mapping) and isinstance(block.get("Confidence"), (int, float))
        ]
        if not scores:
            return 0.0
        return sum(scores) / len(scores)

    @staticmethod
    def _text(blocks: Sequence[Any]) -> str:
        return "\n".join(
            block.get("Text", "")
            for block in blocks
            if isinstance(block, Mapping) and block.get("BlockType") == "LINE"
        )

    def _key_value_pairs(self, blocks: Sequence[Any], by_id: Dict[Any, Any]) -> Dict[str, str]:
        pairs: Dict[str, str] = {}
        for block in blocks:
            if not isinstance(block, Mapping) or block.get("BlockType") != "KEY_VALUE_SET":
                continue
            if "KEY" not in (block.get("EntityTypes") or []):
                continue
            value_ids = self._relationship_ids(block, "VALUE")
            if not value_ids:
                continue
            value_block = by_id.get(value_ids[0])
            if value_block is None:
                continue
            key = _TRAILING_KEY_PUNCTUATION.sub("", self._block_text(block, by_id)).strip().lower()
            pairs[key] = self._block_text(value_block, by_id).strip()
        return pairs

    def _tables(self, blocks: Sequence[Any], by_id: Dict[Any, Any]) -> List[List[List[str]]]:
        tables: List[List[List[str]]] = []
        for block in blocks:
            if not isinstance(block, Mapping) or block.get("BlockType") != "TABLE":
                continue
            cells = [by_id.get(cell_id) for cell_id in self._relationship_ids(block, "CHILD")]
            rows: Dict[int, Dict[int, str]] = {}
            for cell in cells:
                if not isinstance(cell, Mapping) or cell.get("BlockType") != "CELL":
                    continue
                try:
                    row_index = int(cell.get("RowIndex", 0))
                    column_index = int(cell.get("ColumnIndex", 1))
                except (TypeError, ValueError):
                    logger.debug("Skipping table cell %s without usable position", cell.get("Id"))
                    continue
                if column_index < 1:
                    continue
                rows.setdefault(row_index, {})[column_index] = self._block_text(cell, by_id)

            grid: List[List[str]] = []
            for row_index in sorted(rows):
                columns = rows[row_index]
                width = max(columns)
                grid.append([columns.get(column, "") for column in range(1, width + 1)])
            tables.append(grid)
        return tables

    def _block_text(self, block: Mapping[str, Any], by_id: Dict[Any, Any]) -> str:
        words = [by_id.get(child_id) for child_id in self._relationship_ids(block, "CHILD")]
        return " ".join(
            word.get("Text", "") for word in words if word and word.get("BlockType") == "WORD"
        )

    @staticmethod
    def _relationship_ids(block: Mapping[str, Any], kind: str) -> List[Any]:
        for relationship in block.get("Relationships") or []:
            if isinstance(relationship, Mapping) and relationship.get("Type") == kind:
                return list(relationship.get("Ids") or [])
        return []


def load_pages(path: Path) -> Tuple[List[PageRecord], List[int]]:
    """Read a page payload file with the default parser."""
    return TextractPageParser().load_pages(path)
