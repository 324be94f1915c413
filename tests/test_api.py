"""FastAPI endpoint tests for the segmentation API."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from config import Settings
from src import api


@pytest.fixture(autouse=True)
def _reset_dependencies(tmp_path):
    api.get_settings.cache_clear()
    api.app.dependency_overrides.clear()
    settings = Settings(
        output_dir=tmp_path / "output",
        temp_dir=tmp_path / "tmp",
        max_pages_per_patient=3,
    )
    api.app.dependency_overrides[api.get_settings] = lambda: settings
    yield
    api.app.dependency_overrides.clear()


def _page(index: int, patient_id: str | None = None, name: str | None = None) -> dict:
    fields = {}
    if patient_id:
        fields["Patient ID"] = patient_id
    if name:
        fields["Patient Name"] = name
    return {"index": index, "confidence": 90.0, "fields": fields}


def test_healthz_endpoint():
    client = TestClient(api.app)
    response = client.get("/healthz")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["max_pages_per_patient"] == 3
    assert data["field_mapping_version"] == 1


def test_field_mappings_endpoint():
    client = TestClient(api.app)
    response = client.get("/field-mappings")
    assert response.status_code == 200
    aliases = response.json()["aliases"]
    assert set(aliases) == {"name", "dob", "patient_id"}
    assert "mrn" in aliases["patient_id"]


def test_segment_endpoint_success():
    client = TestClient(api.app)
    pages = [
        _page(0, "A-111", "John Doe"),
        _page(1),
        _page(2, "B-222", "Jane Roe"),
        _page(3, "B-222"),
    ]

    response = client.post("/segment", json={"pages": pages})

    assert response.status_code == 200
    data = response.json()
    assert [group["pages"] for group in data["groups"]] == [[0, 1], [2, 3]]
    assert data["groups"][0]["identity"]["name"] == "John Doe"
    assert data["groups"][1]["identity"]["patient_id"] == "B222"
    assert data["total_pages"] == 4
    assert len(data["decisions"]) == 4


def test_segment_endpoint_applies_page_cap_override():
    client = TestClient(api.app)
    pages = [_page(index) for index in range(4)]

    response = client.post("/segment", json={"pages": pages, "max_pages_per_patient": 2})

    assert response.status_code == 200
    data = response.json()
    assert [group["page_count"] for group in data["groups"]] == [2, 2]
    assert data["forced_splits"] == 2


def test_segment_endpoint_accepts_alias_overrides():
    client = TestClient(api.app)
    pages = [
        {"index": 0, "fields": {"member": "M-0001"}},
        {"index": 1, "fields": {"member": "M-0002"}},
    ]

    response = client.post("/segment", json={"pages": pages, "field_aliases": {"patientId": ["member"]}})

    assert response.status_code == 200
    data = response.json()
    assert len(data["groups"]) == 2
    assert data["field_mapping_version"] == 2


def test_segment_endpoint_rejects_empty_pages():
    client = TestClient(api.app)
    response = client.post("/segment", json={"pages": []})
    assert response.status_code == 400


def test_segment_endpoint_rejects_bad_aliases():
    client = TestClient(api.app)
    response = client.post(
        "/segment",
        json={"pages": [_page(0)], "field_aliases": {"phone": ["tel"]}},
    )
    assert response.status_code == 400


def test_invalid_alias_configuration_returns_error(tmp_path):
    aliases = tmp_path / "aliases.yaml"
    aliases.write_text("name: [unclosed\n")
    settings = Settings(output_dir=tmp_path / "output", temp_dir=tmp_path / "tmp", field_aliases_path=aliases)
    api.app.dependency_overrides[api.get_settings] = lambda: settings
    client = TestClient(api.app)

    response = client.get("/field-mappings")

    assert response.status_code == 500
    assert "Invalid field alias configuration" in response.json()["detail"]
