from __future__ import annotations

from fastapi import APIRouter

from prenatal_hub.core.security import AuthDep
from prenatal_hub.schemas.references import (
    ExtractReferencesRequest,
    ExtractReferencesResponse,
)
from prenatal_hub.services.catalog import JOURNEYS, TOPICS
from prenatal_hub.services.references import extract_references

router = APIRouter()


@router.get("/catalog/topics")
async def list_topics() -> dict[str, list[dict]]:
    return {
        "topics": [
            {"id": t.id, "title": t.title, "category": t.category} for t in TOPICS
        ]
    }


@router.get("/catalog/journeys")
async def list_journeys() -> dict[str, list[dict]]:
    return {"journeys": [{"id": j.id, "name": j.name} for j in JOURNEYS]}


@router.post("/references/extract", response_model=ExtractReferencesResponse)
async def preview_references(
    body: ExtractReferencesRequest, auth: AuthDep
) -> ExtractReferencesResponse:
    refs = extract_references(body.content, TOPICS, JOURNEYS)
    return ExtractReferencesResponse(
        topic_references=refs.topic_references,
        journey_references=refs.journey_references,
    )
