from pydantic import BaseModel, Field
from datetime import datetime
from enum import Enum

class Feeling(str, Enum):
    BETTER = "better"
    SAME = "same"
    STRUGGLING = "struggling"

class AdjustmentType(str, Enum):
    SHORTEN = "shorten"
    EXTEND = "extend"
    CHANGE_PACE = "change_pace"
    TAKE_BREAK = "take_break"
    END_EARLY = "end_early"

class CheckInTrigger(str, Enum):
    TIME_ELAPSED = "time_elapsed"
    ACTIVITY_COMPLETE = "activity_complete"
    USER_PAUSE = "user_pause"
    STRUGGLE_DETECTED = "struggle_detected"

class CheckInResponse(BaseModel):
    feeling: Feeling
    wants_to_adjust: bool = False
    adjustment_type: AdjustmentType | None = None

class CheckInState(BaseModel):
    checkins_shown: int = 0
    last_check_in_at: datetime | None = None
    last_response: CheckInResponse | None = None
    adaptive_pacing: float = Field(default=1.0, ge=0.5, le=1.5)
    pending: bool = False
    trigger: CheckInTrigger | None = None
    adaptations: list[AdjustmentType] = Field(default_factory=list)

class CheckInOut(BaseModel):
    adaptive_pacing: float
    suggested_action: str | None = None
    forwarded: AdjustmentType | None = None
