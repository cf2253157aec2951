from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

from prenatal_hub.schemas.journal import Pagination


class LogKickRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    timestamp: datetime | None = None
    note: str | None = Field(default=None, max_length=500)


class UpdateKickRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    note: str | None = Field(default=None, max_length=500)


class KickEvent(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    timestamp: datetime
    note: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class KickResponse(BaseModel):
    message: str
    kick: KickEvent


class KickListResponse(BaseModel):
    kicks: list[KickEvent]
    pagination: Pagination


class MilestoneOut(BaseModel):
    count: int
    label: str


class MilestoneProgress(BaseModel):
    achieved: list[MilestoneOut] = Field(default_factory=list)
    next: MilestoneOut | None = None
    progress_to_next: int


class KickStatsResponse(BaseModel):
    total_kicks: int
    days_tracking: int
    average_per_day: float
    weekly_kicks: int
    weekly_average: float
    first_kick_date: datetime | None = None
    last_kick_date: datetime | None = None
    milestones: MilestoneProgress


class DailyKicks(BaseModel):
    date: date
    count: int
    first_kick: datetime | None = None
    last_kick: datetime | None = None


class PeakDay(BaseModel):
    date: date
    count: int


class DailySummary(BaseModel):
    total_kicks: int
    average_per_day: float
    peak_day: PeakDay | None = None
    days_with_kicks: int
    days_without_kicks: int


class DailyKicksResponse(BaseModel):
    days: list[DailyKicks]
    summary: DailySummary


class HourBucket(BaseModel):
    hour: int
    count: int
    label: str


class PeriodStat(BaseModel):
    period: str
    label: str
    count: int
    percentage: int


class PeakPeriod(BaseModel):
    period: str
    count: int
    percentage: int


class KickPatternsResponse(BaseModel):
    hourly_distribution: list[HourBucket]
    period_stats: list[PeriodStat]
    peak_period: PeakPeriod | None = None
    peak_hour: HourBucket | None = None
    total_kicks: int
