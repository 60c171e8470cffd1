from pydantic import BaseModel
from datetime import datetime

from calmflow.schemas.checkin import CheckInState
from calmflow.schemas.session import PhaseState, Session

class PersistedSnapshot(BaseModel):
    session: Session
    phase_state: PhaseState | None = None
    check_in: CheckInState | None = None
    persisted_at: datetime
    app_version: str

class RecoveryOut(BaseModel):
    key: str
    mode: str
    source_id: str
    label: str | None = None
    current_index: int
    queue_length: int
    persisted_at: datetime
