from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Optional

from calmflow.core.config import settings
from calmflow.schemas.checkin import (
    AdjustmentType,
    CheckInResponse,
    CheckInState,
    CheckInTrigger,
    Feeling,
)
from calmflow.services.clock import (
    PHASE_BEGINNING,
    PHASE_MIDDLE,
    clamp_pacing,
    in_check_in_window,
    progress_fraction,
    seconds_since_check_in,
    session_phase,
)
from calmflow.services.events import CHECK_IN_TRIGGERED, EventBus
from calmflow.utils.time import utcnow

if TYPE_CHECKING:
    from calmflow.services.session import SessionController

logger = logging.getLogger(__name__)

STRUGGLING_FACTOR = 0.8
EXTEND_FACTOR = 1.1

# Hint keys for the presentation layer; wording lives there.
ACTION_SLOW_DOWN = "slow_down"
ACTION_PAUSE_OK = "pause_ok"
ACTION_CONTINUE = "continue"


def _next_pacing(current: float, response: CheckInResponse) -> float:
    """
    Policy:
    - struggling          -> slow down (x0.8)
    - better + extend     -> speed up slightly (x1.1)
    - anything else       -> unchanged
    Always clamped to [0.5, 1.5].
    """
    pacing = current
    if response.feeling == Feeling.STRUGGLING:
        pacing *= STRUGGLING_FACTOR
    elif response.feeling == Feeling.BETTER and response.adjustment_type == AdjustmentType.EXTEND:
        pacing *= EXTEND_FACTOR
    return clamp_pacing(pacing)


class CheckInController:
    """
    Decides when to ask the user how they feel and applies the answer.

    Owns the CheckInState; phase machines only read `state.adaptive_pacing`,
    and only when they start a new countdown.
    """

    def __init__(
        self,
        *,
        min_time_before_check_in: Optional[int] = None,
        auto_check_in: Optional[bool] = None,
        base_pacing: float = 1.0,
        events: Optional[EventBus] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.min_time_before_check_in = (
            settings.MIN_TIME_BEFORE_CHECK_IN if min_time_before_check_in is None else min_time_before_check_in
        )
        self.auto_check_in = settings.AUTO_CHECK_IN if auto_check_in is None else auto_check_in
        self.base_pacing = clamp_pacing(base_pacing)
        self.events = events or EventBus()
        self._clock = clock
        self._controller: Optional["SessionController"] = None
        self.phase = PHASE_BEGINNING
        self.state = CheckInState(adaptive_pacing=self.base_pacing)

    def attach(self, controller: "SessionController") -> None:
        self._controller = controller

    def reset(self) -> None:
        """Fresh state for a new session. The state object is kept so machines see updates."""
        fresh = CheckInState(adaptive_pacing=self.base_pacing)
        for name in CheckInState.model_fields:
            setattr(self.state, name, getattr(fresh, name))
        self.phase = PHASE_BEGINNING

    def load(self, state: CheckInState) -> None:
        """Adopt a restored state by value; the snapshot it came from stays untouched."""
        state = state.model_copy(deep=True)
        for name in CheckInState.model_fields:
            setattr(self.state, name, getattr(state, name))

    def should_trigger(self, elapsed_seconds: float, estimated_total_seconds: float) -> bool:
        progress = progress_fraction(elapsed_seconds, estimated_total_seconds)
        if session_phase(progress) != PHASE_MIDDLE:
            return False
        if not in_check_in_window(progress):
            return False
        since = seconds_since_check_in(self.state.last_check_in_at, elapsed_seconds, now=self._clock())
        if since < self.min_time_before_check_in:
            return False
        # At most one automatic check-in per session.
        return self.state.checkins_shown == 0

    def observe(self, elapsed_seconds: float, estimated_total_seconds: float) -> bool:
        """
        Called on every session transition. Returns True if a check-in was triggered.
        """
        self.phase = session_phase(progress_fraction(elapsed_seconds, estimated_total_seconds))
        if not self.auto_check_in or self.state.pending:
            return False
        if not self.should_trigger(elapsed_seconds, estimated_total_seconds):
            return False
        self.trigger(CheckInTrigger.TIME_ELAPSED, elapsed_seconds=elapsed_seconds)
        return True

    def trigger(self, trigger: CheckInTrigger = CheckInTrigger.USER_PAUSE, **payload) -> None:
        self.state.checkins_shown += 1
        self.state.last_check_in_at = self._clock()
        self.state.pending = True
        self.state.trigger = trigger
        logger.info("Check-in triggered (%s)", trigger.value)
        self.events.emit(CHECK_IN_TRIGGERED, trigger=trigger.value, **payload)

    def dismiss(self) -> None:
        self.state.pending = False
        self.state.trigger = None

    def respond(self, response: CheckInResponse) -> Optional[AdjustmentType]:
        """
        Apply a check-in answer. Pacing changes affect only countdowns that
        start afterwards. Returns the adjustment forwarded to the session
        controller, if any.
        """
        self.state.last_response = response
        self.state.pending = False
        self.state.trigger = None
        if response.adjustment_type is not None:
            self.state.adaptations.append(response.adjustment_type)
        before = self.state.adaptive_pacing
        self.state.adaptive_pacing = _next_pacing(before, response)
        if before != self.state.adaptive_pacing:
            logger.info("Adaptive pacing %.2f -> %.2f", before, self.state.adaptive_pacing)
        return self._forward(response.adjustment_type)

    def suggested_action(self) -> Optional[str]:
        response = self.state.last_response
        if response is None:
            return None
        if response.feeling == Feeling.STRUGGLING:
            return ACTION_PAUSE_OK if response.adjustment_type == AdjustmentType.TAKE_BREAK else ACTION_SLOW_DOWN
        if response.adjustment_type == AdjustmentType.EXTEND:
            return ACTION_CONTINUE
        return None

    def _forward(self, adjustment: Optional[AdjustmentType]) -> Optional[AdjustmentType]:
        controller = self._controller
        if controller is None or adjustment is None:
            return None
        if adjustment == AdjustmentType.END_EARLY:
            controller.abandon()
        elif adjustment == AdjustmentType.TAKE_BREAK:
            controller.pause()
        elif adjustment == AdjustmentType.SHORTEN:
            controller.shorten()
        else:
            return None
        return adjustment
