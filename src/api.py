"""FastAPI application exposing patient report segmentation."""

from __future__ import annotations

from functools import lru_cache
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from config import Settings, load_settings
from src.report_splitter.completeness import CompletenessScorer
from src.report_splitter.field_mapping import FieldMapping
from src.report_splitter.pipeline import PageRecord
from src.report_splitter.segmentation import InputError, NoViableGroupsError, SegmentationEngine


class PagePayload(BaseModel):
    index: int = Field(ge=0)
    confidence: float = 0.0
    fields: Dict[str, Any] = Field(default_factory=dict)
    tables: List[Any] = Field(default_factory=list)
    text: str = ""


class SegmentRequest(BaseModel):
    pages: List[PagePayload]
    max_pages_per_patient: Optional[int] = Field(default=None, gt=0)
    field_aliases: Optional[Dict[str, List[str]]] = None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    settings = load_settings()
    settings.ensure_directories()
    return settings


def _field_mapping(settings: Settings) -> FieldMapping:
    try:
        return settings.field_mapping()
    except (ValueError, OSError) as exc:
        raise HTTPException(status_code=500, detail=f"Invalid field alias configuration: {exc}") from exc


app = FastAPI(title="Patient Report Splitter", version="0.1.0")


@app.get("/healthz")
def health(settings: Settings = Depends(get_settings)) -> Dict[str, Any]:
    return {
        "status": "ok",
        "max_pages_per_patient": settings.max_pages_per_patient,
        "confidence_threshold": settings.confidence_threshold,
        "field_mapping_version": _field_mapping(settings).version,
    }


@app.get("/field-mappings")
def field_mappings(settings: Settings = Depends(get_settings)) -> Dict[str, Any]:
    mapping = _field_mapping(settings)
    return {"version": mapping.version, "aliases": mapping.as_dict()}


@app.post("/segment")
def segment(request: SegmentRequest, settings: Settings = Depends(get_settings)) -> JSONResponse:
    mapping = _field_mapping(settings)
    if request.field_aliases:
        try:
            mapping = mapping.merge(request.field_aliases)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc

    engine = SegmentationEngine(
        settings,
        field_mapping=mapping,
        max_pages_per_patient=request.max_pages_per_patient,
    )
    pages = [PageRecord.from_dict(page.model_dump()) for page in request.pages]

    try:
        result = engine.segment(pages)
    except InputError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except NoViableGroupsError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    reports = CompletenessScorer(settings).score_groups(result.groups)
    payload = {
        "field_mapping_version": result.field_mapping_version,
        "max_pages_per_patient": result.max_pages_per_patient,
        "total_pages": result.total_pages,
        "forced_splits": result.forced_splits,
        "groups": [
            {
                "report_index": report.group.report_index,
                "pages": report.group.page_indices,
                "page_count": report.group.page_count,
                "first_page_index": report.group.first_page_index,
                "last_page_index": report.group.last_page_index,
                "has_patient_data": report.group.has_patient_data,
                "forced_split": report.group.forced_split,
                "identity": report.group.identity.to_dict() if report.group.identity else None,
                "completeness": report.summary.completeness,
                "is_high_confidence": report.summary.is_high_confidence,
            }
            for report in reports
        ],
        "decisions": [decision.describe() for decision in result.decisions],
    }
    return JSONResponse(content=payload)
