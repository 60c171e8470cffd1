"""
Pytest configuration and shared fixtures for all tests.
"""
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from calmflow.content.library import ContentLibrary
from calmflow.db.models import Base
from calmflow.main import create_app
from calmflow.repositories.snapshot_repo import InMemorySnapshotStore, SqlSnapshotStore
from calmflow.services.activities import (
    create_breathing_activity,
    create_focus_activity,
    create_grounding_activity,
    create_reset_activity,
)
from calmflow.services.checkin import CheckInController
from calmflow.services.events import EventBus
from calmflow.services.persistence import SessionPersistence
from calmflow.services.runtime import build_runtime
from calmflow.services.session import SessionController


class FakeClock:
    """Deterministic wall clock; call it like utcnow()."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 0, **kw) -> datetime:
        self.now = self.now + timedelta(seconds=seconds, **kw)
        return self.now


def run_ticks(controller: SessionController, count: int) -> None:
    for _ in range(count):
        controller.tick()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def library() -> ContentLibrary:
    """A private library instance, so tests can remove content safely."""
    return ContentLibrary()


@pytest.fixture
def store() -> InMemorySnapshotStore:
    return InMemorySnapshotStore()


@pytest.fixture
def events() -> EventBus:
    return EventBus()


@pytest.fixture
def persistence(store, library, clock) -> SessionPersistence:
    return SessionPersistence(store, library=library, interval_seconds=15, clock=clock)


@pytest.fixture
def check_in(events, clock) -> CheckInController:
    return CheckInController(events=events, clock=clock, auto_check_in=True, min_time_before_check_in=180)


@pytest.fixture
def controller(persistence, check_in, events, clock) -> SessionController:
    return SessionController(
        persistence=persistence, check_in=check_in, events=events, clock=clock, auto_advance=False,
    )


@pytest.fixture
def box_breathing(library):
    """4-4-4-4 x 4 cycles, 64 seconds."""
    return create_breathing_activity("box-breathing", library)


@pytest.fixture
def slow_wave(library):
    """4-0-8-0 x 6 cycles, 72 seconds."""
    return create_breathing_activity("slow-wave", library)


@pytest.fixture
def senses_grounding(library):
    return create_grounding_activity("5-4-3-2-1", library)


@pytest.fixture
def short_reset():
    return create_reset_activity("Quick Stretch", [
        {"instruction": "Reach up", "duration": 3},
        {"instruction": "Fold forward", "duration": 2},
    ])


@pytest.fixture
def clarity_focus(library):
    """5 minute focus session."""
    return create_focus_activity("clarity-pause", library)


@pytest.fixture
def sql_engine():
    """In-memory SQLite shared across connections for the test's lifetime."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def sql_store(sql_engine):
    store = SqlSnapshotStore(sessionmaker(sql_engine, expire_on_commit=False, class_=Session))
    yield store
    store.close()


@pytest.fixture
def runtime(store, library):
    return build_runtime(store, library=library, auto_advance=False)


@pytest.fixture
def app(runtime):
    return create_app(runtime)


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to an app serving the test runtime. The ticker is not started."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
