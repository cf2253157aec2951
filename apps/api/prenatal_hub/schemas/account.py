from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from prenatal_hub.schemas.journal import CONTENT_MAX_CHARS, MoodType, to_utc_date
from prenatal_hub.schemas.preferences import FontSize, ReadingMode, Theme


class UpdateAccountRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, min_length=1, max_length=100)
    due_date: date | None = None

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator("due_date", mode="before")
    @classmethod
    def normalize_due_date(cls, v: Any) -> Any:
        return None if v in (None, "") else to_utc_date(v)


class AccountProfile(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    email: str | None = None
    name: str | None = None
    due_date: date | None = None
    deletion_requested_at: datetime | None = None
    permanent_deletion_at: datetime | None = None


class AccountResponse(BaseModel):
    message: str | None = None
    user: AccountProfile


class DeletionScheduleResponse(BaseModel):
    message: str
    deletion_requested_at: datetime
    permanent_deletion_at: datetime


class GuestPreferences(BaseModel):
    model_config = ConfigDict(extra="ignore")

    theme: Theme | None = None
    font_size: FontSize | None = None
    reading_mode: ReadingMode | None = None


class GuestStreak(BaseModel):
    model_config = ConfigDict(extra="ignore")

    current_streak: int | None = Field(default=None, ge=0)
    longest_streak: int | None = Field(default=None, ge=0)
    last_activity_date: date | None = None

    @field_validator("last_activity_date", mode="before")
    @classmethod
    def normalize_date(cls, v: Any) -> Any:
        return None if v in (None, "") else to_utc_date(v)


class GuestKick(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    # Milliseconds since the epoch, as recorded in the browser.
    timestamp: int = Field(ge=0)


class GuestJournalEntry(BaseModel):
    model_config = ConfigDict(extra="ignore")

    journal_date: date
    content: str = Field(default="", max_length=CONTENT_MAX_CHARS)
    mood: MoodType | None = None
    kick_count: int | None = Field(default=None, ge=0)
    created_at: datetime

    @field_validator("journal_date", mode="before")
    @classmethod
    def normalize_journal_date(cls, v: Any) -> Any:
        return to_utc_date(v)


class GuestData(BaseModel):
    model_config = ConfigDict(extra="forbid")

    completed_stories: list[int] = Field(default_factory=list, max_length=500)
    preferences: GuestPreferences | None = None
    streak_data: GuestStreak | None = None
    kick_data: list[GuestKick] = Field(default_factory=list, max_length=20000)
    journal_data: list[GuestJournalEntry] = Field(
        default_factory=list, max_length=2000
    )


class MigrateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    data: GuestData


class MigratedItems(BaseModel):
    progress: int = 0
    preferences: int = 0
    streaks: int = 0
    kicks: int = 0
    journal_entries: int = 0


class MigrateResponse(BaseModel):
    message: str
    migrated_items: MigratedItems
    replayed: bool = False


class PurgeResponse(BaseModel):
    ok: bool = True
    scanned: int
    deleted: int
    failed: int
