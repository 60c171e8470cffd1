"""
Per-activity phase state machines.

One machine runs the currently active Activity. It owns at most one live
CountdownTimer; every new countdown cancels the previous one first. Machines
are not restartable: restarting an activity means building a new machine.
"""
from __future__ import annotations

import logging
import math
from typing import Callable, Iterator, Optional

from calmflow.schemas.activity import Activity, ActivityType
from calmflow.schemas.checkin import CheckInState
from calmflow.schemas.session import PhaseDescriptor, PhaseState
from calmflow.services.timer import CountdownTimer, Tick
from calmflow.utils.time import scale_seconds

logger = logging.getLogger(__name__)

PHASE_IDLE = "idle"
PHASE_INHALE = "inhale"
PHASE_HOLD = "hold"
PHASE_EXHALE = "exhale"
PHASE_STEP = "step"
PHASE_FOCUS = "focus"
PHASE_COMPLETE = "complete"

PhaseCallback = Callable[["PhaseMachine"], None]


class PhaseMachine:
    activity_type: ActivityType
    paced = True

    def __init__(
        self,
        activity: Activity,
        *,
        check_in: Optional[CheckInState] = None,
        on_phase_change: Optional[PhaseCallback] = None,
        on_complete: Optional[PhaseCallback] = None,
    ):
        if activity.type != self.activity_type:
            raise ValueError(f"{type(self).__name__} cannot run a {activity.type.value} activity")
        self.activity = activity
        self._check_in = check_in
        self._on_phase_change = on_phase_change
        self._on_complete = on_complete
        self._timer: Optional[CountdownTimer] = None
        self._ticks: Optional[Iterator[Tick]] = None
        self._remaining = 0
        self._started = False
        self._completion_sent = False
        self.phase = PHASE_IDLE
        self.index = 0
        self.segment = 0
        self.paused = False
        self.complete = False

    # -- public surface -------------------------------------------------

    @property
    def activity_id(self) -> str:
        return self.activity.id

    @property
    def started(self) -> bool:
        return self._started

    @property
    def countdown_remaining(self) -> int:
        return self._remaining

    @property
    def has_live_timer(self) -> bool:
        return self._ticks is not None

    @property
    def total(self) -> int:
        return 1

    @property
    def phase_progress(self) -> float:
        return 1.0 if self.complete else 0.0

    @property
    def current_phase_descriptor(self) -> PhaseDescriptor:
        return PhaseDescriptor(
            activity_id=self.activity.id,
            activity_type=self.activity.type,
            phase=self.phase,
            index=self.index,
            total=self.total,
            countdown_remaining=self._remaining,
            label=self._label(),
            paused=self.paused,
            complete=self.complete,
        )

    def start(self) -> None:
        if self._started:
            raise RuntimeError("Phase machines are not restartable; build a new one")
        self._started = True
        self._begin()

    def tick(self) -> None:
        """Advance the live countdown by one second."""
        if self.complete or self.paused or self._ticks is None:
            return
        event = next(self._ticks, None)
        if event is None:
            self._ticks = None
            self._timer = None
            return
        self._remaining = event.remaining
        if event.completed:
            self._ticks = None
            self._timer = None
            self._countdown_finished()

    def pause(self) -> None:
        if self.complete or self.paused:
            return
        self.paused = True
        self._cancel_timer()

    def resume(self) -> None:
        if not self.paused:
            return
        self.paused = False
        if self.complete:
            return
        if not self._started:
            self.start()
            return
        if self._remaining > 0:
            self._arm(self._remaining)
        else:
            self._countdown_finished()

    def cancel(self) -> None:
        """Stop any live countdown. Safe from every state, any number of times."""
        self._cancel_timer()

    def to_state(self) -> PhaseState:
        return PhaseState(
            activity_id=self.activity.id,
            activity_type=self.activity.type,
            phase=self.phase,
            countdown_remaining=self._remaining,
            cycle_or_step_index=self.index,
            segment_index=self.segment,
            complete=self.complete,
            paused=self.paused,
        )

    def restore(self, state: PhaseState) -> None:
        """
        Load a persisted position. The machine comes back paused, with no live
        timer, so elapsed wall-clock time is never replayed as countdown.
        """
        if state.activity_id != self.activity.id:
            raise ValueError(f"Phase state for {state.activity_id} cannot restore {self.activity.id}")
        if self._started:
            raise RuntimeError("Cannot restore into a machine that already started")
        self._started = state.phase != PHASE_IDLE or state.complete
        self.phase = state.phase
        self.index = state.cycle_or_step_index
        self.segment = state.segment_index
        self._remaining = max(0, state.countdown_remaining)
        self.complete = state.complete
        self._completion_sent = state.complete
        self.paused = not state.complete

    # -- hooks for subclasses -------------------------------------------

    def _begin(self) -> None:
        raise NotImplementedError

    def _countdown_finished(self) -> None:
        pass

    def _label(self) -> Optional[str]:
        return None

    # -- helpers --------------------------------------------------------

    @property
    def pacing(self) -> float:
        return self._check_in.adaptive_pacing if self._check_in is not None else 1.0

    def _scaled(self, seconds: int) -> int:
        if seconds <= 0:
            return 0
        if not self.paced:
            return seconds
        return scale_seconds(seconds, self.pacing)

    def _run_countdown(self, seconds: int) -> None:
        self._cancel_timer()
        self._remaining = max(0, int(seconds))
        if self._remaining > 0 and not self.paused:
            self._arm(self._remaining)

    def _arm(self, seconds: int) -> None:
        self._cancel_timer()
        self._timer = CountdownTimer()
        self._ticks = self._timer.start(seconds)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        self._timer = None
        self._ticks = None

    def _set_phase(self, phase: str) -> None:
        self.phase = phase
        if self._on_phase_change is not None:
            self._on_phase_change(self)

    def _finish(self) -> None:
        self._cancel_timer()
        self._remaining = 0
        self.complete = True
        self.paused = False
        self._set_phase(PHASE_COMPLETE)
        if self._completion_sent:
            return
        self._completion_sent = True
        logger.debug("Activity %s complete", self.activity.id)
        if self._on_complete is not None:
            self._on_complete(self)


class BreathingMachine(PhaseMachine):
    """
    inhale -> [hold] -> exhale -> [hold] per cycle. Zero-length holds are
    dropped from the cycle, so they are never entered.
    """
    activity_type = ActivityType.BREATHING

    def __init__(self, activity: Activity, **kw):
        super().__init__(activity, **kw)
        cfg = activity.config
        self._segments = [
            (name, seconds)
            for name, seconds in (
                (PHASE_INHALE, cfg.inhale),
                (PHASE_HOLD, cfg.hold1),
                (PHASE_EXHALE, cfg.exhale),
                (PHASE_HOLD, cfg.hold2),
            )
            if seconds > 0
        ]
        self._cycles = cfg.cycles

    @property
    def total(self) -> int:
        return self._cycles

    @property
    def phase_progress(self) -> float:
        if self.complete:
            return 1.0
        if not self._started or not self._segments:
            return 0.0
        per_cycle = len(self._segments)
        done = self.index * per_cycle + self.segment
        _, seconds = self._segments[self.segment]
        planned = self._scaled(seconds) or 1
        within = 1 - min(self._remaining, planned) / planned
        return min(1.0, (done + within) / (per_cycle * self._cycles))

    def _begin(self) -> None:
        if not self._segments:
            self._finish()
            return
        self.index = 0
        self._enter(0)

    def _enter(self, segment: int) -> None:
        self.segment = segment
        name, seconds = self._segments[segment]
        self._run_countdown(self._scaled(seconds))
        self._set_phase(name)

    def _countdown_finished(self) -> None:
        nxt = self.segment + 1
        if nxt < len(self._segments):
            self._enter(nxt)
            return
        self.index += 1
        if self.index >= self._cycles:
            self.index = self._cycles - 1
            self._finish()
            return
        self._enter(0)


class StepMachine(PhaseMachine):
    """
    Step-based activities. The countdown is advisory: reaching zero leaves the
    step in place until the caller advances.
    """

    @property
    def steps(self) -> list[str]:
        raise NotImplementedError

    @property
    def total(self) -> int:
        return len(self.steps)

    @property
    def phase_progress(self) -> float:
        if self.complete:
            return 1.0
        if not self._started or not self.steps:
            return 0.0
        return self.index / len(self.steps)

    def step_seconds(self, index: int) -> int:
        raise NotImplementedError

    def advance(self) -> None:
        if self.complete:
            return
        if not self._started:
            raise RuntimeError("Cannot advance a machine that has not started")
        if self.index + 1 < len(self.steps):
            self._enter(self.index + 1)
        else:
            self._finish()

    def _begin(self) -> None:
        if not self.steps:
            self._finish()
            return
        self._enter(0)

    def _enter(self, index: int) -> None:
        self.index = index
        self._run_countdown(self._scaled(self.step_seconds(index)))
        self._set_phase(PHASE_STEP)

    def _label(self) -> Optional[str]:
        if self.complete or not self.steps:
            return None
        return self.steps[min(self.index, len(self.steps) - 1)]

    def _even_split(self) -> int:
        return math.ceil(self.activity.duration / len(self.steps))


class GroundingMachine(StepMachine):
    activity_type = ActivityType.GROUNDING

    @property
    def steps(self) -> list[str]:
        return list(self.activity.config.steps)

    def step_seconds(self, index: int) -> int:
        return self._even_split()


class JournalMachine(StepMachine):
    activity_type = ActivityType.JOURNAL

    @property
    def steps(self) -> list[str]:
        cfg = self.activity.config
        if cfg.prompts:
            return [p.prompt for p in cfg.prompts]
        return [cfg.prompt or ""]

    def step_seconds(self, index: int) -> int:
        return self._even_split()


class ResetMachine(StepMachine):
    activity_type = ActivityType.RESET

    @property
    def steps(self) -> list[str]:
        return [s.instruction for s in self.activity.config.steps]

    def step_seconds(self, index: int) -> int:
        return self.activity.config.steps[index].duration


class FocusMachine(PhaseMachine):
    """Single continuous countdown of the full target duration."""
    activity_type = ActivityType.FOCUS
    paced = False

    @property
    def phase_progress(self) -> float:
        if self.complete:
            return 1.0
        if not self._started or self.activity.duration == 0:
            return 0.0
        return 1 - self._remaining / self.activity.duration

    def _begin(self) -> None:
        self._run_countdown(self.activity.duration)
        self._set_phase(PHASE_FOCUS)
        if self._remaining == 0:
            self._finish()

    def _countdown_finished(self) -> None:
        self._finish()


MACHINES: dict[ActivityType, type[PhaseMachine]] = {
    ActivityType.BREATHING: BreathingMachine,
    ActivityType.GROUNDING: GroundingMachine,
    ActivityType.JOURNAL: JournalMachine,
    ActivityType.RESET: ResetMachine,
    ActivityType.FOCUS: FocusMachine,
}


def build_machine(activity: Activity, **kw) -> PhaseMachine:
    return MACHINES[activity.type](activity, **kw)
