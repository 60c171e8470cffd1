from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from calmflow.schemas.activity import Activity, ActivityRef, ActivityType
from calmflow.schemas.checkin import CheckInState


class SessionMode(str, Enum):
    SINGLE = "single"
    RITUAL = "ritual"
    SOS = "sos"
    PROGRAM_DAY = "program-day"


class SessionStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


IN_FLIGHT_STATUSES = frozenset({SessionStatus.ACTIVE, SessionStatus.PAUSED})


class Session(BaseModel):
    mode: SessionMode
    queue: list[Activity] = Field(min_length=1)
    current_index: int = Field(default=0, ge=0)
    started_at: datetime
    status: SessionStatus = SessionStatus.ACTIVE
    source_id: str
    label: Optional[str] = None
    program_day: Optional[int] = None
    elapsed_seconds: int = 0
    completed_indices: list[int] = Field(default_factory=list)
    skipped_indices: list[int] = Field(default_factory=list)
    dropped_activity_ids: list[str] = Field(default_factory=list)
    ended_at: Optional[datetime] = None

    @property
    def current_activity(self) -> Activity:
        return self.queue[self.current_index]

    @property
    def is_last_activity(self) -> bool:
        return self.current_index == len(self.queue) - 1

    @property
    def estimated_total_seconds(self) -> int:
        return sum(a.duration for a in self.queue)

    @property
    def in_flight(self) -> bool:
        return self.status in IN_FLIGHT_STATUSES


class PhaseState(BaseModel):
    activity_id: str
    activity_type: ActivityType
    phase: str = "idle"
    countdown_remaining: int = 0
    cycle_or_step_index: int = 0
    segment_index: int = 0
    complete: bool = False
    paused: bool = False


class PhaseDescriptor(BaseModel):
    activity_id: str
    activity_type: ActivityType
    phase: str
    index: int
    total: int
    countdown_remaining: int
    label: Optional[str] = None
    paused: bool = False
    complete: bool = False


class SessionSummary(BaseModel):
    mode: SessionMode
    source_id: str
    label: Optional[str] = None
    activities_count: int
    completed_count: int
    skipped_count: int
    total_duration: int
    xp_earned: int
    started_at: datetime
    ended_at: datetime
    was_partial: bool
    was_interrupted: bool


class SessionView(BaseModel):
    """Read-only projection consumed by the presentation layer."""
    mode: SessionMode
    status: SessionStatus
    source_id: str
    current_index: int
    queue_length: int
    current_activity: Activity
    phase: Optional[PhaseDescriptor] = None
    countdown_remaining: int = 0
    progress_fraction: float
    elapsed_seconds: int
    check_in: Optional[CheckInState] = None


class StartSessionIn(BaseModel):
    mode: SessionMode = SessionMode.SINGLE
    activities: list[ActivityRef] = Field(min_length=1)
    source_id: Optional[str] = None
    label: Optional[str] = None


class StartPresetIn(BaseModel):
    day: Optional[int] = Field(default=None, ge=1)
