"""
Wires the process-local session core: store, persistence, check-ins, events
and the one SessionController the API serves.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from calmflow.content.library import DEFAULT_LIBRARY, ContentLibrary
from calmflow.repositories.snapshot_repo import InMemorySnapshotStore, SnapshotStore, SqlSnapshotStore
from calmflow.services.checkin import CheckInController
from calmflow.services.events import EventBus
from calmflow.services.persistence import SessionPersistence
from calmflow.services.session import SessionController

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    controller: SessionController
    persistence: SessionPersistence
    events: EventBus
    library: ContentLibrary

    def close(self) -> None:
        """Flush and release the snapshot store."""
        self.persistence.store.close()


def build_runtime(
    store: Optional[SnapshotStore] = None,
    *,
    library: ContentLibrary = DEFAULT_LIBRARY,
    auto_advance: Optional[bool] = None,
) -> Runtime:
    events = EventBus()
    persistence = SessionPersistence(store or InMemorySnapshotStore(), library=library)
    controller = SessionController(
        persistence=persistence,
        check_in=CheckInController(events=events),
        events=events,
        auto_advance=auto_advance,
    )
    return Runtime(controller=controller, persistence=persistence, events=events, library=library)


def build_sql_runtime(**kw) -> Runtime:
    """Runtime backed by the on-device snapshot database."""
    from calmflow.db.init_db import init_db
    from calmflow.db.session import SessionLocal, engine

    init_db(engine)
    logger.info("Using SQL snapshot store")
    return build_runtime(SqlSnapshotStore(SessionLocal), **kw)
