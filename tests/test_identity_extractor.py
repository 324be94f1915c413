"""Tests for per-page identity extraction."""

from __future__ import annotations

from src.report_splitter.field_mapping import FieldMapping
from src.report_splitter.identity_extractor import IdentityExtractor
from src.report_splitter.pipeline import IdentityCandidate, PageRecord


def _page(fields=None, tables=(), index: int = 0) -> PageRecord:
    return PageRecord(index=index, confidence=95.0, fields=fields or {}, tables=tables)


def test_structured_fields_resolve_all_three():
    extractor = IdentityExtractor()
    page = _page({"patient name": "John Doe", "dob": "01/15/1990", "mrn": "MRN-12345"})

    candidate = extractor.extract(page)

    assert candidate == IdentityCandidate(name="John Doe", dob="01/15/1990", patient_id="MRN12345")


def test_alias_order_decides_between_fields():
    extractor = IdentityExtractor()
    page = _page({"name": "Jane Roe", "patient name": "John Doe", "patient id": "A100"})

    assert extractor.extract(page).name == "John Doe"


def test_first_matching_alias_wins_even_when_invalid():
    extractor = IdentityExtractor()
    # "patient id" comes before "mrn" and normalizes to nothing usable.
    page = _page({"patient id": "#1", "mrn": "555123", "name": "John Doe"})

    candidate = extractor.extract(page)

    assert candidate.patient_id is None
    assert candidate.name == "John Doe"


def test_empty_structured_value_falls_through_to_next_alias():
    extractor = IdentityExtractor()
    page = _page({"patient name": "", "name": "John Doe"})

    assert extractor.extract(page).name == "John Doe"


def test_dob_alone_is_not_an_identity():
    extractor = IdentityExtractor()
    page = _page({"dob": "01/15/1990"})

    assert extractor.extract(page) is None


def test_blank_page_has_no_identity():
    assert IdentityExtractor().extract(_page()) is None


def test_table_fallback_uses_next_cell():
    extractor = IdentityExtractor()
    tables = [[["Patient ID", "ABC-789"], ["Date of Birth", "03/04/1985"]]]
    page = _page({"patient name": "Alice Smith"}, tables)

    candidate = extractor.extract(page)

    assert candidate == IdentityCandidate(name="Alice Smith", dob="03/04/1985", patient_id="ABC789")


def test_table_fallback_splits_label_cell_on_colon():
    extractor = IdentityExtractor()
    tables = [[["MRN: 445566", None]]]

    candidate = extractor.extract(_page(tables=tables))

    assert candidate.patient_id == "445566"


def test_table_fallback_does_not_capture_label_as_value():
    extractor = IdentityExtractor()
    tables = [[["patient name", "patient name"]]]

    assert extractor.extract(_page(tables=tables)) is None


def test_structured_value_beats_table_value():
    extractor = IdentityExtractor()
    tables = [[["Patient Name", "Someone Else"], ["MRN", "999888"]]]
    page = _page({"patient name": "John Doe"}, tables)

    candidate = extractor.extract(page)

    assert candidate.name == "John Doe"
    assert candidate.patient_id == "999888"


def test_tables_skipped_when_name_and_id_known():
    extractor = IdentityExtractor()
    tables = [[["DOB", "02/02/2002"]]]
    page = _page({"patient name": "John Doe", "mrn": "123456"}, tables)

    assert extractor.extract(page).dob is None


def test_malformed_tables_are_tolerated():
    extractor = IdentityExtractor()
    tables = [None, "not a table", [None, "row", ["MRN", 42], [7, "Patient Name", "Bob Brown"]]]

    candidate = extractor.extract(_page(tables=tables))

    assert candidate.name == "Bob Brown"
    assert candidate.patient_id is None


def test_non_mapping_fields_are_tolerated():
    page = PageRecord(index=0, fields=None, tables=[[["Name", "Carol King"]]])  # type: ignore[arg-type]
    assert IdentityExtractor().extract(page).name == "Carol King"


def test_custom_mapping_is_used():
    mapping = FieldMapping.default().merge({"name": ["pt"]})
    page = _page({"pt": "Dana Scully", "patient name": "Ignored Name"})

    assert IdentityExtractor(mapping).extract(page).name == "Dana Scully"


def test_extract_document_keeps_page_order():
    extractor = IdentityExtractor()
    pages = [_page({"mrn": "111111"}, index=0), _page(index=1), _page({"mrn": "222222"}, index=2)]

    candidates = extractor.extract_document(pages)

    assert [c.patient_id if c else None for c in candidates] == ["111111", None, "222222"]


def test_non_string_structured_value_stops_alias_probing():
    extractor = IdentityExtractor()
    page = _page({"patient id": 12345, "mrn": "999888", "name": "John Doe"})

    candidate = extractor.extract(page)

    assert candidate.patient_id is None
    assert candidate.name == "John Doe"
