"""
Storage collaborator for session snapshots.

The core treats storage as an opaque key-value service: write, read, delete.
No atomicity is assumed across keys.
"""
from __future__ import annotations

import copy
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from functools import partial
from typing import Any, Optional, Protocol

from sqlalchemy import delete, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_fixed

from calmflow.db.models import SessionSnapshotRow

logger = logging.getLogger(__name__)


class SnapshotStore(Protocol):
    def write(self, key: str, snapshot: dict[str, Any]) -> None: ...

    def read(self, key: str) -> Optional[dict[str, Any]]: ...

    def delete(self, key: str) -> None: ...

    def close(self) -> None: ...


class InMemorySnapshotStore:
    def __init__(self) -> None:
        self._data: dict[str, dict[str, Any]] = {}

    def write(self, key: str, snapshot: dict[str, Any]) -> None:
        self._data[key] = copy.deepcopy(snapshot)

    def read(self, key: str) -> Optional[dict[str, Any]]:
        data = self._data.get(key)
        return copy.deepcopy(data) if data is not None else None

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)

    def close(self) -> None:
        pass


_retry_locked = retry(
    stop=stop_after_attempt(3),
    wait=wait_fixed(0.05),
    retry=retry_if_exception_type(OperationalError),
    reraise=True,
)


class SqlSnapshotStore:
    """
    SQLAlchemy-backed store (SQLite on device). Transient OperationalErrors
    such as "database is locked" are retried here, not in the core.

    Writes and deletes go to a single writer thread so the caller never waits
    on the database. Reads are queued behind pending writes and wait for their
    result, so a read always sees every earlier write.
    """

    def __init__(self, session_factory: sessionmaker, *, background_writes: bool = True):
        self.session_factory = session_factory
        self._executor: Optional[ThreadPoolExecutor] = (
            ThreadPoolExecutor(max_workers=1, thread_name_prefix="snapshot-writer") if background_writes else None
        )

    def write(self, key: str, snapshot: dict[str, Any]) -> None:
        self._submit(self._write, key, snapshot)

    def read(self, key: str) -> Optional[dict[str, Any]]:
        if self._executor is None:
            return self._read(key)
        return self._executor.submit(self._read, key).result()

    def delete(self, key: str) -> None:
        self._submit(self._delete, key)

    def flush(self) -> None:
        """Block until every queued write has run."""
        if self._executor is not None:
            self._executor.submit(lambda: None).result()

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def _submit(self, fn, *args) -> None:
        if self._executor is None:
            fn(*args)
            return
        future = self._executor.submit(fn, *args)
        future.add_done_callback(partial(_log_failure, args[0]))

    @_retry_locked
    def _write(self, key: str, snapshot: dict[str, Any]) -> None:
        with self.session_factory() as db:
            db.merge(SessionSnapshotRow(key=key, payload=snapshot))
            db.commit()

    @_retry_locked
    def _read(self, key: str) -> Optional[dict[str, Any]]:
        with self.session_factory() as db:
            row = _get_row(db, key)
            return dict(row.payload) if row is not None else None

    @_retry_locked
    def _delete(self, key: str) -> None:
        with self.session_factory() as db:
            db.execute(delete(SessionSnapshotRow).where(SessionSnapshotRow.key == key))
            db.commit()


def _log_failure(key: str, future: Future) -> None:
    error = future.exception()
    if error is not None:
        logger.error("Snapshot store write failed for %s: %s", key, error)


def _get_row(db: Session, key: str) -> SessionSnapshotRow | None:
    res = db.execute(select(SessionSnapshotRow).where(SessionSnapshotRow.key == key))
    return res.scalar_one_or_none()
