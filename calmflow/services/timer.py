from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Optional


@dataclass(slots=True, frozen=True)
class Tick:
    remaining: int
    completed: bool = False


class CountdownTimer:
    """
    Single-shot, cancellable countdown.

    `start(seconds)` returns a lazy iterator yielding one `Tick` per elapsed
    second. The last tick carries `remaining == 0` and `completed == True`, so
    completion lands in the same step as the final tick. Whoever drives the
    iterator decides what a second is (see `calmflow.services.ticker`).
    """

    def __init__(self) -> None:
        self.remaining = 0
        self._started = False
        self._cancelled = False
        self._ticks: Optional[Iterator[Tick]] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def done(self) -> bool:
        return self._started and (self._cancelled or self.remaining == 0)

    def start(self, seconds: int) -> Iterator[Tick]:
        if self._started:
            raise RuntimeError("CountdownTimer is single-shot; create a new instance")
        if not isinstance(seconds, int) or seconds < 1:
            raise ValueError(f"countdown must be a positive integer, got {seconds!r}")
        self._started = True
        self.remaining = seconds
        self._ticks = self._run()
        return self._ticks

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        if self._ticks is not None:
            self._ticks.close()

    def _run(self) -> Iterator[Tick]:
        while self.remaining > 0 and not self._cancelled:
            self.remaining -= 1
            yield Tick(remaining=self.remaining, completed=self.remaining == 0)
