from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from prenatal_hub.core.config import settings


class TopicReference(BaseModel):
    model_config = ConfigDict(extra="forbid")

    topic_id: int = Field(gt=0)
    title: str = Field(min_length=1, max_length=200)


class JourneyReference(BaseModel):
    model_config = ConfigDict(extra="forbid")

    journey_id: str = Field(min_length=1, max_length=100)
    title: str = Field(min_length=1, max_length=200)


class ExtractReferencesRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    content: str = Field(default="", max_length=settings.journal_content_max_chars)


class ExtractReferencesResponse(BaseModel):
    topic_references: list[TopicReference] = Field(default_factory=list)
    journey_references: list[JourneyReference] = Field(default_factory=list)
