from __future__ import annotations

from datetime import date
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from prenatal_hub.schemas.journal import to_utc_date

Theme = Literal["light", "dark", "system"]
FontSize = Literal["small", "medium", "large"]
ReadingMode = Literal["normal", "focus", "night"]


class NotificationPreferences(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: bool = True
    push: bool = True
    kick_reminders: bool = True
    journal_reminders: bool = True


class AccessibilityPreferences(BaseModel):
    model_config = ConfigDict(extra="forbid")

    reduce_motion: bool = False
    high_contrast: bool = False
    screen_reader: bool = False


class NotificationPatch(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: bool | None = None
    push: bool | None = None
    kick_reminders: bool | None = None
    journal_reminders: bool | None = None


class AccessibilityPatch(BaseModel):
    model_config = ConfigDict(extra="forbid")

    reduce_motion: bool | None = None
    high_contrast: bool | None = None
    screen_reader: bool | None = None


class TopicProgressEntry(BaseModel):
    model_config = ConfigDict(extra="forbid")

    story_id: int
    current_step: str = Field(max_length=64)
    completed_steps: list[str] = Field(default_factory=list, max_length=32)
    last_accessed_at: str = Field(max_length=64)


def _due_date(v: Any) -> Any:
    return None if v in (None, "") else to_utc_date(v)


class UserPreferences(BaseModel):
    model_config = ConfigDict(extra="ignore")

    theme: Theme = "system"
    font_size: FontSize = "medium"
    reading_mode: ReadingMode = "normal"
    notifications: NotificationPreferences = Field(
        default_factory=NotificationPreferences
    )
    accessibility: AccessibilityPreferences = Field(
        default_factory=AccessibilityPreferences
    )
    due_date: date | None = None
    topic_progress: dict[str, TopicProgressEntry] | None = None
    completed_stories: list[int] | None = None
    updated_at: str | None = None

    @field_validator("due_date", mode="before")
    @classmethod
    def normalize_due_date(cls, v: Any) -> Any:
        return _due_date(v)

    @field_validator("notifications", "accessibility", mode="before")
    @classmethod
    def none_as_default(cls, v: Any) -> Any:
        return {} if v is None else v


class UpdatePreferencesRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    theme: Theme | None = None
    font_size: FontSize | None = None
    reading_mode: ReadingMode | None = None
    notifications: NotificationPatch | None = None
    accessibility: AccessibilityPatch | None = None
    due_date: date | None = None
    topic_progress: dict[str, TopicProgressEntry] | None = None
    completed_stories: list[int] | None = Field(default=None, max_length=500)

    @field_validator("due_date", mode="before")
    @classmethod
    def normalize_due_date(cls, v: Any) -> Any:
        return _due_date(v)


class PreferencesResponse(BaseModel):
    preferences: UserPreferences
