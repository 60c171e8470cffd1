"""
Session snapshot persistence and cold-start recovery.
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from pydantic import ValidationError

from calmflow.content.library import DEFAULT_LIBRARY, ContentLibrary
from calmflow.core.config import settings
from calmflow.core.errors import NotFoundError, StaleSnapshotError
from calmflow.repositories.snapshot_repo import SnapshotStore
from calmflow.schemas.checkin import CheckInState
from calmflow.schemas.session import PhaseState, Session, SessionMode
from calmflow.schemas.snapshot import PersistedSnapshot
from calmflow.utils.time import is_past, utcnow

logger = logging.getLogger(__name__)

KEY_PREFIX = "calmflow:session:"
LATEST_KEY = "calmflow:latest"


def storage_key(mode: SessionMode | str, source_id: str) -> str:
    mode_value = mode.value if isinstance(mode, SessionMode) else mode
    return f"{KEY_PREFIX}{mode_value}:{source_id}"


class SessionPersistence:
    """
    Writes a PersistedSnapshot per (mode, session id), last write wins.

    Writes are fire-and-forget: a failing store is logged and the session
    carries on. Restore happens only at cold start, before a new session.
    """

    def __init__(
        self,
        store: SnapshotStore,
        *,
        library: ContentLibrary = DEFAULT_LIBRARY,
        interval_seconds: Optional[int] = None,
        max_age: Optional[timedelta] = None,
        app_version: Optional[str] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.library = library
        self.interval_seconds = settings.SNAPSHOT_INTERVAL_SECONDS if interval_seconds is None else interval_seconds
        self.max_age = max_age or timedelta(minutes=settings.SNAPSHOT_MAX_AGE_MINUTES)
        self.app_version = app_version or settings.APP_VERSION
        self._clock = clock
        self._last_saved_elapsed: Optional[int] = None
        self._pointer_key: Optional[str] = None

    def key_for(self, session: Session) -> str:
        return storage_key(session.mode, session.source_id)

    def is_due(self, elapsed_seconds: int) -> bool:
        """Periodic checkpoint: bounds what a hard kill can lose."""
        if self.interval_seconds <= 0:
            return False
        if self._last_saved_elapsed is None:
            return True
        return elapsed_seconds - self._last_saved_elapsed >= self.interval_seconds

    def save_state(
        self,
        session: Session,
        phase_state: Optional[PhaseState],
        check_in: Optional[CheckInState] = None,
    ) -> PersistedSnapshot:
        snapshot = PersistedSnapshot(
            session=session.model_copy(deep=True),
            phase_state=phase_state.model_copy() if phase_state is not None else None,
            check_in=check_in.model_copy(deep=True) if check_in is not None else None,
            persisted_at=self._clock(),
            app_version=self.app_version,
        )
        key = self.key_for(session)
        self._last_saved_elapsed = session.elapsed_seconds
        try:
            self.store.write(key, snapshot.model_dump(mode="json"))
            if self._pointer_key != key:
                self._replace_pointer(key)
        except Exception as e:
            logger.error("Failed to persist session snapshot %s: %s", key, e)
        return snapshot

    def clear_state(self, key: str) -> None:
        self._last_saved_elapsed = None
        try:
            self.store.delete(key)
            latest = self.store.read(LATEST_KEY)
            if latest and latest.get("key") == key:
                self.store.delete(LATEST_KEY)
            if self._pointer_key == key:
                self._pointer_key = None
        except Exception as e:
            logger.error("Failed to clear session snapshot %s: %s", key, e)

    def _replace_pointer(self, key: str) -> None:
        """
        Point LATEST_KEY at `key`. Only one session is ever resumable, so the
        snapshot the pointer named before is superseded and deleted.
        """
        previous = self.latest_key()
        if previous is not None and previous != key:
            logger.info("Superseding snapshot %s with %s", previous, key)
            self.store.delete(previous)
        self.store.write(LATEST_KEY, {"key": key})
        self._pointer_key = key

    def restore(self, key: str) -> Optional[PersistedSnapshot]:
        """
        Load and validate a snapshot. Expired or unreadable snapshots are
        cleared and yield None. A snapshot whose activities no longer resolve
        raises StaleSnapshotError; nothing has been rebuilt at that point.
        """
        raw = self.store.read(key)
        if raw is None:
            return None
        try:
            snapshot = PersistedSnapshot.model_validate(raw)
        except ValidationError as e:
            logger.warning("Discarding unreadable snapshot %s: %s", key, e)
            self.clear_state(key)
            return None
        if is_past(snapshot.persisted_at + self.max_age, now=self._clock()):
            logger.info("Discarding expired snapshot %s (persisted %s)", key, snapshot.persisted_at)
            self.clear_state(key)
            return None
        for activity in snapshot.session.queue:
            try:
                self.library.resolve(activity)
            except NotFoundError as e:
                raise StaleSnapshotError(key, activity.id) from e
        return snapshot

    def latest_key(self) -> Optional[str]:
        pointer = self.store.read(LATEST_KEY)
        return pointer.get("key") if pointer else None

    def restore_latest(self) -> Optional[PersistedSnapshot]:
        key = self.latest_key()
        if key is None:
            return None
        return self.restore(key)

    def discard(self, key: Optional[str] = None) -> None:
        target = key or self.latest_key()
        if target is not None:
            self.clear_state(target)
