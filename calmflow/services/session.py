"""
Session queue controller.

The single owner and writer of the live Session and its PhaseState. Every
transition is funnelled through `_transition`, which is the only place that
requests a snapshot and the only place the check-in controller observes.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional, Sequence

from calmflow.core.config import settings
from calmflow.core.errors import (
    NoActiveSessionError,
    PhaseNotCompleteError,
    SessionAlreadyActiveError,
)
from calmflow.schemas.activity import Activity
from calmflow.schemas.checkin import AdjustmentType, CheckInResponse, CheckInTrigger
from calmflow.schemas.session import (
    PhaseState,
    Session,
    SessionMode,
    SessionStatus,
    SessionSummary,
    SessionView,
)
from calmflow.schemas.snapshot import PersistedSnapshot
from calmflow.services.checkin import CheckInController
from calmflow.services.events import (
    ACTIVITY_COMPLETED,
    PHASE_CHANGED,
    SESSION_ABANDONED,
    SESSION_COMPLETED,
    SESSION_STARTED,
    EventBus,
)
from calmflow.services.persistence import SessionPersistence
from calmflow.services.phases import PhaseMachine, StepMachine, build_machine
from calmflow.utils.time import utcnow

logger = logging.getLogger(__name__)

# XP policy
SINGLE_XP = 15
RITUAL_XP = 30
RITUAL_MIN_XP = 10
SKIP_PENALTY_XP = 5
SOS_XP = 5


def _xp_for(mode: SessionMode, completed: int, skipped: int) -> int:
    if mode == SessionMode.SINGLE:
        return SINGLE_XP
    if mode == SessionMode.SOS:
        return SOS_XP
    if completed == 0:
        return 0
    if skipped:
        return max(RITUAL_MIN_XP, RITUAL_XP - skipped * SKIP_PENALTY_XP)
    return RITUAL_XP


class SessionController:
    def __init__(
        self,
        *,
        persistence: Optional[SessionPersistence] = None,
        check_in: Optional[CheckInController] = None,
        events: Optional[EventBus] = None,
        clock: Callable[[], datetime] = utcnow,
        auto_advance: Optional[bool] = None,
    ):
        self.events = events or EventBus()
        self.persistence = persistence
        self.check_in = check_in or CheckInController(events=self.events, clock=clock)
        self.check_in.attach(self)
        self.auto_advance = settings.AUTO_ADVANCE if auto_advance is None else auto_advance
        self._clock = clock
        self.session: Optional[Session] = None
        self._machine: Optional[PhaseMachine] = None
        self._suspended: Optional[PhaseState] = None

    # -- read side ------------------------------------------------------

    @property
    def machine(self) -> Optional[PhaseMachine]:
        return self._machine

    @property
    def in_flight(self) -> bool:
        return self.session is not None and self.session.in_flight

    @property
    def status(self) -> Optional[SessionStatus]:
        return self.session.status if self.session is not None else None

    def phase_state(self) -> Optional[PhaseState]:
        if self._machine is not None:
            return self._machine.to_state()
        return self._suspended

    def progress_fraction(self) -> float:
        session = self.session
        if session is None:
            return 0.0
        if session.status == SessionStatus.COMPLETED:
            return 1.0
        within = self._machine.phase_progress if self._machine is not None else 0.0
        return min(1.0, (session.current_index + within) / len(session.queue))

    def view(self) -> SessionView:
        session = self._require_session("view")
        machine = self._machine
        return SessionView(
            mode=session.mode,
            status=session.status,
            source_id=session.source_id,
            current_index=session.current_index,
            queue_length=len(session.queue),
            current_activity=session.current_activity,
            phase=machine.current_phase_descriptor if machine is not None else None,
            countdown_remaining=machine.countdown_remaining if machine is not None else 0,
            progress_fraction=self.progress_fraction(),
            elapsed_seconds=session.elapsed_seconds,
            check_in=self.check_in.state.model_copy(deep=True),
        )

    def summary(self, *, was_interrupted: bool = False) -> SessionSummary:
        session = self._require_session("summary")
        completed = [session.queue[i] for i in session.completed_indices]
        skipped = len(session.skipped_indices) + len(session.dropped_activity_ids)
        return SessionSummary(
            mode=session.mode,
            source_id=session.source_id,
            label=session.label,
            activities_count=len(session.queue) + len(session.dropped_activity_ids),
            completed_count=len(completed),
            skipped_count=skipped,
            total_duration=sum(a.duration for a in completed),
            xp_earned=_xp_for(session.mode, len(completed), skipped),
            started_at=session.started_at,
            ended_at=session.ended_at or self._clock(),
            was_partial=skipped > 0,
            was_interrupted=was_interrupted or session.status == SessionStatus.ABANDONED,
        )

    # -- lifecycle ------------------------------------------------------

    def start(
        self,
        activities: Sequence[Activity],
        mode: SessionMode = SessionMode.SINGLE,
        *,
        source_id: Optional[str] = None,
        label: Optional[str] = None,
        program_day: Optional[int] = None,
    ) -> Session:
        if self.in_flight:
            raise SessionAlreadyActiveError(self.session.source_id)
        if not activities:
            raise ValueError("A session needs at least one activity")
        self.session = Session(
            mode=mode,
            queue=list(activities),
            started_at=self._clock(),
            source_id=source_id or activities[0].id,
            label=label,
            program_day=program_day,
        )
        self._suspended = None
        self.check_in.reset()
        logger.info("Session started: %s %s (%s activities)", mode.value, self.session.source_id, len(activities))
        self.events.emit(SESSION_STARTED, mode=mode.value, source_id=self.session.source_id)
        self._activate()
        self._transition("start")
        return self.session

    def advance(self) -> None:
        session = self._require_in_flight("advance")
        if self._machine is None or not self._machine.complete:
            raise PhaseNotCompleteError(session.current_activity.id)
        self._discard_machine()
        self._move_next()

    def advance_step(self) -> None:
        """Explicit step advance for grounding / journal / reset activities."""
        session = self._require_in_flight("advance_step")
        machine = self._machine
        if not isinstance(machine, StepMachine):
            raise ValueError(f"{session.current_activity.type.value} activities have no steps to advance")
        machine.advance()
        self._transition("step")

    def skip_current(self) -> None:
        session = self._require_in_flight("skip")
        if self._machine is None or not self._machine.complete:
            session.skipped_indices.append(session.current_index)
        self._discard_machine()
        self._move_next()

    def shorten(self) -> None:
        """Drop every activity queued after the current one."""
        session = self._require_in_flight("shorten")
        dropped = session.queue[session.current_index + 1:]
        if not dropped:
            return
        session.dropped_activity_ids.extend(a.id for a in dropped)
        del session.queue[session.current_index + 1:]
        logger.info("Session shortened: dropped %s activities", len(dropped))
        self._transition("shorten")

    def add_activity(self, activity: Activity, at_index: Optional[int] = None) -> None:
        session = self._require_in_flight("add_activity")
        index = len(session.queue) if at_index is None else at_index
        if index <= session.current_index or index > len(session.queue):
            raise ValueError(f"Activities can only be inserted after the current one (index {index})")
        session.queue.insert(index, activity)
        self._transition("add_activity")

    def pause(self) -> None:
        session = self._require_in_flight("pause")
        if session.status == SessionStatus.PAUSED:
            return
        session.status = SessionStatus.PAUSED
        if self._machine is not None:
            self._machine.pause()
        self._transition("pause")

    def resume(self) -> None:
        session = self._require_in_flight("resume")
        if self._machine is None and self._suspended is not None:
            self.foreground()
        session.status = SessionStatus.ACTIVE
        if self._machine is not None:
            self._machine.resume()
        self._transition("resume")

    def abandon(self) -> None:
        session = self.session
        if session is None or session.status == SessionStatus.ABANDONED:
            return
        if session.status == SessionStatus.COMPLETED:
            return
        self._discard_machine()
        self._suspended = None
        session.status = SessionStatus.ABANDONED
        session.ended_at = self._clock()
        logger.info("Session abandoned: %s at index %s", session.source_id, session.current_index)
        self.events.emit(SESSION_ABANDONED, source_id=session.source_id, index=session.current_index)
        self._transition("abandon")

    def tick(self) -> None:
        """One elapsed second."""
        session = self.session
        machine = self._machine
        if session is None or session.status != SessionStatus.ACTIVE or machine is None or machine.paused:
            return
        session.elapsed_seconds += 1
        machine.tick()
        if self.session is session and session.status == SessionStatus.ACTIVE and self._checkpoint_due():
            self._transition("checkpoint")

    # -- check-ins ------------------------------------------------------

    def respond_to_check_in(self, response: CheckInResponse) -> Optional[AdjustmentType]:
        self._require_in_flight("respond_to_check_in")
        forwarded = self.check_in.respond(response)
        if forwarded is None:
            self._transition("check_in")
        return forwarded

    def request_check_in(self, trigger: CheckInTrigger = CheckInTrigger.USER_PAUSE) -> None:
        session = self._require_in_flight("request_check_in")
        self.check_in.trigger(trigger, elapsed_seconds=session.elapsed_seconds)

    # -- backgrounding & recovery ---------------------------------------

    def background(self) -> Optional[PersistedSnapshot]:
        """
        App is going to the background: snapshot, then drop the machine and its timer.
        """
        session = self.session
        if session is None or not session.in_flight:
            return None
        state = self.phase_state()
        snapshot = None
        if self.persistence is not None:
            snapshot = self.persistence.save_state(session, state, self.check_in.state)
        self._discard_machine()
        self._suspended = state
        logger.info("Session backgrounded: %s", session.source_id)
        return snapshot

    def foreground(self) -> None:
        """Rebuild the machine from the suspended position. It stays paused until resume()."""
        session = self.session
        if session is None or self._suspended is None or self._machine is not None:
            return
        self._machine = self._restore_machine(session.current_activity, self._suspended)
        self._suspended = None

    def recover(self, snapshot: PersistedSnapshot) -> Session:
        """
        Rebuild a session from a validated snapshot. Index and phase position
        are taken verbatim; the machine starts paused.
        """
        if self.in_flight:
            raise SessionAlreadyActiveError(self.session.source_id)
        session = snapshot.session.model_copy(deep=True)
        session.status = SessionStatus.ACTIVE
        machine = None
        if snapshot.phase_state is not None:
            machine = self._restore_machine(session.current_activity, snapshot.phase_state)
        self.session = session
        self._suspended = None
        self._machine = machine
        if snapshot.check_in is not None:
            self.check_in.load(snapshot.check_in)
        else:
            self.check_in.reset()
        if self._machine is None:
            self._activate()
            self._machine.pause()
        logger.info("Session recovered: %s at index %s", session.source_id, session.current_index)
        self._transition("recover")
        return session

    # -- internals ------------------------------------------------------

    def _require_session(self, operation: str) -> Session:
        if self.session is None:
            raise NoActiveSessionError(operation)
        return self.session

    def _require_in_flight(self, operation: str) -> Session:
        session = self._require_session(operation)
        if not session.in_flight:
            raise NoActiveSessionError(operation)
        return session

    def _new_machine(self, activity: Activity) -> PhaseMachine:
        return build_machine(
            activity,
            check_in=self.check_in.state,
            on_phase_change=self._handle_phase_change,
            on_complete=self._handle_activity_complete,
        )

    def _restore_machine(self, activity: Activity, state: PhaseState) -> PhaseMachine:
        machine = self._new_machine(activity)
        machine.restore(state)
        return machine

    def _activate(self) -> None:
        session = self.session
        self._machine = self._new_machine(session.current_activity)
        if session.status == SessionStatus.PAUSED:
            self._machine.pause()
        self._machine.start()

    def _checkpoint_due(self) -> bool:
        elapsed = self.session.elapsed_seconds
        if self.persistence is not None:
            return self.persistence.is_due(elapsed)
        interval = settings.SNAPSHOT_INTERVAL_SECONDS
        return interval > 0 and elapsed % interval == 0

    def _discard_machine(self) -> None:
        if self._machine is not None:
            self._machine.cancel()
        self._machine = None

    def _move_next(self) -> None:
        session = self.session
        if session.is_last_activity:
            session.status = SessionStatus.COMPLETED
            session.ended_at = self._clock()
            logger.info("Session completed: %s", session.source_id)
            self.events.emit(SESSION_COMPLETED, source_id=session.source_id, mode=session.mode.value)
            self._transition("complete")
            return
        session.current_index += 1
        self._activate()
        self._transition("advance")

    def _handle_phase_change(self, machine: PhaseMachine) -> None:
        if machine is not self._machine:
            return
        self.events.emit(
            PHASE_CHANGED,
            activity_id=machine.activity_id,
            phase=machine.phase,
            index=machine.index,
            countdown=machine.countdown_remaining,
        )
        if machine.started and not machine.complete:
            self._transition("phase")

    def _handle_activity_complete(self, machine: PhaseMachine) -> None:
        session = self.session
        if machine is not self._machine or session is None:
            return
        session.completed_indices.append(session.current_index)
        self.events.emit(ACTIVITY_COMPLETED, activity_id=machine.activity_id, index=session.current_index)
        self._transition("activity_complete")
        if self.auto_advance and session.status == SessionStatus.ACTIVE:
            self.advance()

    def _transition(self, reason: str) -> None:
        session = self.session
        if session is None:
            return
        logger.debug("transition %s: %s index=%s status=%s", reason, session.source_id,
                     session.current_index, session.status.value)
        if self.persistence is not None:
            key = self.persistence.key_for(session)
            if session.in_flight:
                self.persistence.save_state(session, self.phase_state(), self.check_in.state)
            else:
                self.persistence.clear_state(key)
        if session.status == SessionStatus.ACTIVE:
            self.check_in.observe(session.elapsed_seconds, session.estimated_total_seconds)
