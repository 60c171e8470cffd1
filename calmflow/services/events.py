from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable

logger = logging.getLogger(__name__)

PHASE_CHANGED = "phase_changed"
ACTIVITY_COMPLETED = "activity_completed"
SESSION_STARTED = "session_started"
SESSION_COMPLETED = "session_completed"
SESSION_ABANDONED = "session_abandoned"
CHECK_IN_TRIGGERED = "check_in_triggered"

EVENT_NAMES = frozenset({
    PHASE_CHANGED, ACTIVITY_COMPLETED, SESSION_STARTED,
    SESSION_COMPLETED, SESSION_ABANDONED, CHECK_IN_TRIGGERED,
})

Handler = Callable[[str, dict[str, Any]], None]


class EventBus:
    """
    Named feedback events for haptics/audio collaborators.
    Emission is fire-and-forget: a failing handler is logged and skipped.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = defaultdict(list)

    def subscribe(self, name: str, handler: Handler) -> Callable[[], None]:
        if name != "*" and name not in EVENT_NAMES:
            raise ValueError(f"Unknown event: {name}")
        self._handlers[name].append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers[name]:
                self._handlers[name].remove(handler)

        return unsubscribe

    def emit(self, name: str, **payload: Any) -> None:
        logger.debug("event %s %s", name, payload)
        for handler in [*self._handlers[name], *self._handlers["*"]]:
            try:
                handler(name, payload)
            except Exception as e:
                logger.error("Event handler failed for %s: %s", name, e)
