"""
Drives the live session once per interval on the event loop.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

from calmflow.core.config import settings
from calmflow.services.session import SessionController

logger = logging.getLogger(__name__)


async def run_ticker(controller: SessionController, interval: Optional[float] = None) -> None:
    """Call controller.tick() every `interval` seconds until cancelled."""
    period = settings.TICK_INTERVAL_SECONDS if interval is None else interval
    logger.info("Ticker started (%.2fs)", period)
    try:
        while True:
            await asyncio.sleep(period)
            try:
                controller.tick()
            except Exception as e:
                logger.error("Session tick failed: %s", e, exc_info=True)
    except asyncio.CancelledError:
        logger.info("Ticker stopped")
        raise


class Ticker:
    """Owns the single ticker task. start() and stop() are idempotent."""

    def __init__(self, controller: SessionController, interval: Optional[float] = None):
        self.controller = controller
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(run_ticker(self.controller, self.interval), name="calmflow_ticker")

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
