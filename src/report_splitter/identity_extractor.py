"""Per-page patient identity extraction from structured fields and table cells."""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence

from .field_mapping import FIELD_NAME, FIELD_PATIENT_ID, FieldMapping
from .field_normalizer import normalize_field
from .logging_utils import get_logger
from .pipeline import IdentityCandidate, PageRecord

logger = get_logger(__name__)


class IdentityExtractor:
    """Resolve an optional identity candidate for a single page.

    Structured key/value fields win over table cells. Within the fields, the
    first alias carrying a value decides the field even when that value fails
    normalization. Tables are only scanned while ``name`` or ``patient_id`` is
    still missing, and only fill fields that are still empty.
    """

    def __init__(self, field_mapping: Optional[FieldMapping] = None):
        self.field_mapping = field_mapping or FieldMapping.default()

    def extract(self, page: PageRecord) -> Optional[IdentityCandidate]:
        values: Dict[str, Optional[str]] = {name: None for name in self.field_mapping.fields()}

        self._extract_from_fields(page.fields, values)
        if values[FIELD_NAME] is None or values[FIELD_PATIENT_ID] is None:
            self._extract_from_tables(page.tables, values, page.index)

        if values[FIELD_NAME] is None and values[FIELD_PATIENT_ID] is None:
            logger.debug("Page %s: no usable name or patient id", page.index)
            return None

        candidate = IdentityCandidate(**values)
        logger.debug("Page %s: identity %s", page.index, candidate.to_dict())
        return candidate

    def extract_document(self, pages: Sequence[PageRecord]) -> List[Optional[IdentityCandidate]]:
        return [self.extract(page) for page in pages]

    def _extract_from_fields(self, fields: Any, values: Dict[str, Optional[str]]) -> None:
        if not isinstance(fields, Mapping):
            return
        for field_name, aliases in self.field_mapping.items():
            for alias in aliases:
                raw = fields.get(alias)
                if raw is None or raw == "":
                    continue
                values[field_name] = normalize_field(raw, field_name)
                break

    def _extract_from_tables(
        self,
        tables: Any,
        values: Dict[str, Optional[str]],
        page_index: int,
    ) -> None:
        if not isinstance(tables, (list, tuple)):
            return
        for table in tables:
            if not isinstance(table, (list, tuple)):
                logger.debug("Page %s: skipping table without rows", page_index)
                continue
            for row in table:
                if not isinstance(row, (list, tuple)):
                    continue
                self._scan_row(row, values)

    def _scan_row(self, row: Sequence[Any], values: Dict[str, Optional[str]]) -> None:
        for position, cell in enumerate(row):
            if not isinstance(cell, str) or not cell:
                continue
            cell_lower = cell.lower()
            for field_name, aliases in self.field_mapping.items():
                if values[field_name] is not None:
                    continue
                if not any(alias in cell_lower for alias in aliases):
                    continue
                raw = self._value_for_label(row, position, cell)
                # A label cell must not be captured as its own value.
                if raw is None or raw.strip() == cell_lower:
                    continue
                normalized = normalize_field(raw, field_name)
                if normalized is not None:
                    values[field_name] = normalized

    @staticmethod
    def _value_for_label(row: Sequence[Any], position: int, cell: str) -> Optional[str]:
        if position + 1 < len(row):
            neighbour = row[position + 1]
            if isinstance(neighbour, str) and neighbour:
                return neighbour
        _, separator, remainder = cell.partition(":")
        if separator and remainder:
            return remainder
        return None
