from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from prenatal_hub.core.config import settings
from prenatal_hub.schemas.references import JourneyReference, TopicReference

MoodType = Literal[
    "happy",
    "calm",
    "anxious",
    "tired",
    "excited",
    "emotional",
    "grateful",
    "hopeful",
    "uncomfortable",
    "nesting",
]
EntryType = Literal["text", "voice"]

CONTENT_MAX_CHARS = settings.journal_content_max_chars


def to_utc_date(value: Any) -> Any:
    """Normalise a date or ISO datetime to its UTC calendar date.

    Anything unrecognised is returned untouched so pydantic reports it.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        raw = value.strip()
        if len(raw) == 10:
            return raw
        try:
            parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            return value
        return to_utc_date(parsed)
    return value


class CreateJournalEntryRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    journal_date: date
    content: str = Field(default="", max_length=CONTENT_MAX_CHARS)
    mood: MoodType | None = None
    kick_count: int | None = Field(default=None, ge=0)
    entry_type: EntryType = "text"
    topic_references: list[TopicReference] = Field(default_factory=list)
    journey_references: list[JourneyReference] = Field(default_factory=list)

    @field_validator("journal_date", mode="before")
    @classmethod
    def normalize_journal_date(cls, v: Any) -> Any:
        return to_utc_date(v)


class UpdateJournalEntryRequest(BaseModel):
    """Partial update. Fields left out are untouched; `mood: null` clears it."""

    model_config = ConfigDict(extra="forbid")

    content: str | None = Field(default=None, max_length=CONTENT_MAX_CHARS)
    mood: MoodType | None = None
    kick_count: int | None = Field(default=None, ge=0)
    topic_references: list[TopicReference] | None = None
    journey_references: list[JourneyReference] | None = None


class JournalEntry(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    journal_date: date
    content: str = ""
    mood: MoodType | None = None
    kick_count: int | None = None
    entry_type: EntryType = "text"
    topic_references: list[TopicReference] = Field(default_factory=list)
    journey_references: list[JourneyReference] = Field(default_factory=list)
    voice_note_ids: list[str] = Field(default_factory=list)
    created_at: str | None = None
    updated_at: str | None = None

    @field_validator("journal_date", mode="before")
    @classmethod
    def normalize_journal_date(cls, v: Any) -> Any:
        return to_utc_date(v)

    @field_validator(
        "topic_references", "journey_references", "voice_note_ids", mode="before"
    )
    @classmethod
    def none_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v


class Pagination(BaseModel):
    total: int
    limit: int
    offset: int
    has_more: bool


class JournalListResponse(BaseModel):
    entries: list[JournalEntry]
    pagination: Pagination


class JournalDateResponse(BaseModel):
    date: date
    entries: list[JournalEntry]
    count: int


class MoodShare(BaseModel):
    mood: MoodType
    count: int
    percentage: int


class MoodPoint(BaseModel):
    date: date
    mood: MoodType


class MoodPeriod(BaseModel):
    days: int
    start_date: date
    end_date: date


class MoodStatsResponse(BaseModel):
    period: MoodPeriod
    total_entries_with_mood: int
    most_common_mood: MoodType | None = None
    mood_distribution: list[MoodShare] = Field(default_factory=list)
    mood_trend: list[MoodPoint] = Field(default_factory=list)


class CalendarDay(BaseModel):
    has_entry: bool = True
    entry_count: int
    moods: list[MoodType] = Field(default_factory=list)
    entry_ids: list[str] = Field(default_factory=list)


class CalendarResponse(BaseModel):
    month: int
    year: int
    days_with_entries: dict[int, CalendarDay] = Field(default_factory=dict)
    total_entries: int


class StreakResponse(BaseModel):
    current_streak: int
    longest_streak: int
    last_activity_date: date | None = None
