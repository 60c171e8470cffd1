"""
Tests for snapshot persistence and cold-start recovery.
"""
import pytest
from datetime import timedelta
from unittest.mock import Mock

from calmflow.content.library import ContentLibrary
from calmflow.core.errors import StaleSnapshotError
from calmflow.repositories.snapshot_repo import InMemorySnapshotStore
from calmflow.schemas.checkin import CheckInState
from calmflow.schemas.session import Session, SessionMode, SessionStatus
from calmflow.services.persistence import LATEST_KEY, SessionPersistence, storage_key
from calmflow.services.phases import build_machine
from calmflow.services.session import SessionController


@pytest.fixture
def session(box_breathing, short_reset, clock):
    return Session(
        mode=SessionMode.RITUAL,
        queue=[box_breathing, short_reset],
        started_at=clock(),
        source_id="evening",
    )


@pytest.fixture
def phase_state(box_breathing):
    machine = build_machine(box_breathing)
    machine.start()
    machine.tick()
    return machine.to_state()


class TestStorageKey:
    """Test storage_key format."""

    def test_key(self):
        assert storage_key(SessionMode.PROGRAM_DAY, "calm-week-day2") == "calmflow:session:program-day:calm-week-day2"
        assert storage_key("single", "x") == "calmflow:session:single:x"


class TestSaveState:
    """Test save_state."""

    def test_writes_snapshot_and_pointer(self, persistence, store, session, phase_state, clock):
        snapshot = persistence.save_state(session, phase_state, CheckInState(adaptive_pacing=0.8))
        key = storage_key(SessionMode.RITUAL, "evening")

        raw = store.read(key)
        assert raw["session"]["source_id"] == "evening"
        assert raw["phase_state"]["countdown_remaining"] == 3
        assert raw["check_in"]["adaptive_pacing"] == 0.8
        assert raw["app_version"] == persistence.app_version
        assert store.read(LATEST_KEY) == {"key": key}
        assert snapshot.persisted_at == clock()

    def test_snapshot_is_a_deep_copy(self, persistence, session, phase_state):
        snapshot = persistence.save_state(session, phase_state)
        session.current_index = 1
        session.completed_indices.append(0)

        assert snapshot.session.current_index == 0
        assert snapshot.session.completed_indices == []

    def test_last_write_wins(self, persistence, store, session, phase_state):
        persistence.save_state(session, phase_state)
        session.current_index = 1
        persistence.save_state(session, None)

        raw = store.read(storage_key(SessionMode.RITUAL, "evening"))
        assert raw["session"]["current_index"] == 1
        assert raw["phase_state"] is None

    def test_store_failure_is_logged_not_raised(self, library, session, phase_state, caplog):
        broken = Mock()
        broken.write.side_effect = OSError("disk full")
        persistence = SessionPersistence(broken, library=library)

        snapshot = persistence.save_state(session, phase_state)

        assert snapshot.session.source_id == "evening"
        assert "disk full" in caplog.text

    def test_new_session_supersedes_previous_snapshot(self, persistence, store, session, phase_state, box_breathing, clock):
        persistence.save_state(session, phase_state)
        single = Session(mode=SessionMode.SINGLE, queue=[box_breathing], started_at=clock(), source_id=box_breathing.id)
        persistence.save_state(single, None)

        assert sorted(store.keys()) == sorted([LATEST_KEY, persistence.key_for(single)])
        assert persistence.restore_latest().session.source_id == box_breathing.id

    def test_supersedes_snapshot_left_by_previous_process(self, store, library, session, phase_state, box_breathing, clock):
        SessionPersistence(store, library=library, clock=clock).save_state(session, phase_state)

        relaunched = SessionPersistence(store, library=library, clock=clock)
        single = Session(mode=SessionMode.SINGLE, queue=[box_breathing], started_at=clock(), source_id=box_breathing.id)
        relaunched.save_state(single, None)

        assert store.read(storage_key(SessionMode.RITUAL, "evening")) is None
        assert store.read(LATEST_KEY) == {"key": relaunched.key_for(single)}


class TestIsDue:
    """Test the periodic checkpoint interval."""

    def test_due_before_first_save(self, persistence):
        assert persistence.is_due(0) is True

    def test_interval(self, persistence, session, phase_state):
        session.elapsed_seconds = 30
        persistence.save_state(session, phase_state)

        assert persistence.is_due(44) is False
        assert persistence.is_due(45) is True

    def test_disabled(self, store, library):
        assert SessionPersistence(store, library=library, interval_seconds=0).is_due(100) is False


class TestRestore:
    """Test restore / restore_latest."""

    def test_restore_round_trip(self, persistence, session, phase_state):
        persistence.save_state(session, phase_state)
        snapshot = persistence.restore(storage_key(SessionMode.RITUAL, "evening"))

        assert snapshot.session.model_dump() == session.model_dump()
        assert snapshot.phase_state.model_dump() == phase_state.model_dump()

    def test_missing_key(self, persistence):
        assert persistence.restore("calmflow:session:single:nothing") is None
        assert persistence.restore_latest() is None

    def test_restore_latest(self, persistence, session, phase_state):
        persistence.save_state(session, phase_state)
        assert persistence.restore_latest().session.source_id == "evening"

    def test_expired_snapshot_cleared(self, persistence, store, session, phase_state, clock):
        persistence.save_state(session, phase_state)
        clock.advance(minutes=121)

        assert persistence.restore_latest() is None
        assert store.read(storage_key(SessionMode.RITUAL, "evening")) is None
        assert store.read(LATEST_KEY) is None

    def test_within_max_age(self, persistence, session, phase_state, clock):
        persistence.save_state(session, phase_state)
        clock.advance(minutes=119)
        assert persistence.restore_latest() is not None

    def test_custom_max_age(self, store, library, clock, session, phase_state):
        short = SessionPersistence(store, library=library, max_age=timedelta(minutes=5), clock=clock)
        short.save_state(session, phase_state)
        clock.advance(minutes=6)
        assert short.restore_latest() is None

    def test_unreadable_snapshot_cleared(self, persistence, store):
        key = storage_key(SessionMode.SINGLE, "broken")
        store.write(key, {"session": {"nope": True}})

        assert persistence.restore(key) is None
        assert store.read(key) is None

    def test_stale_snapshot_raises(self, store, clock, session, phase_state):
        saving = SessionPersistence(store, library=ContentLibrary(), clock=clock)
        saving.save_state(session, phase_state)

        newer_content = ContentLibrary()
        del newer_content.patterns["box-breathing"]
        loading = SessionPersistence(store, library=newer_content, clock=clock)

        with pytest.raises(StaleSnapshotError) as exc:
            loading.restore_latest()
        assert exc.value.missing_id == "breathing-box-breathing"
        assert exc.value.key == storage_key(SessionMode.RITUAL, "evening")

    def test_stale_snapshot_leaves_controller_idle(self, store, clock, session, phase_state):
        SessionPersistence(store, clock=clock).save_state(session, phase_state)
        newer_content = ContentLibrary()
        del newer_content.patterns["box-breathing"]
        loading = SessionPersistence(store, library=newer_content, clock=clock)
        controller = SessionController(persistence=loading, clock=clock)

        with pytest.raises(StaleSnapshotError):
            controller.recover(loading.restore_latest())
        assert controller.session is None
        assert controller.machine is None

    def test_adhoc_activities_always_resolve(self, persistence, short_reset, clock):
        session = Session(mode=SessionMode.SINGLE, queue=[short_reset], started_at=clock(), source_id="stretch")
        persistence.save_state(session, None)
        assert persistence.restore_latest() is not None


class TestClearAndDiscard:
    """Test clear_state and discard."""

    def test_clear_state(self, persistence, store, session, phase_state):
        persistence.save_state(session, phase_state)
        key = persistence.key_for(session)
        persistence.clear_state(key)

        assert store.read(key) is None
        assert store.read(LATEST_KEY) is None

    def test_clear_other_key_keeps_pointer(self, persistence, store, session, phase_state):
        persistence.save_state(session, phase_state)
        persistence.clear_state("calmflow:session:single:other")
        assert store.read(LATEST_KEY) is not None

    def test_discard_latest(self, persistence, store, session, phase_state):
        persistence.save_state(session, phase_state)
        persistence.discard()
        assert persistence.restore_latest() is None

    def test_discard_when_empty(self, persistence):
        persistence.discard()

    def test_clear_failure_logged(self, library, caplog):
        broken = Mock()
        broken.delete.side_effect = OSError("locked")
        SessionPersistence(broken, library=library).clear_state("k")
        assert "locked" in caplog.text


class TestControllerPersistence:
    """Test that controller transitions reach the store."""

    def test_every_transition_saves(self, controller, store, clarity_focus):
        writes = []
        original = store.write
        store.write = lambda key, data: (writes.append(key), original(key, data))

        controller.start([clarity_focus])
        count = len(writes)
        controller.pause()
        controller.resume()
        assert len(writes) == count + 2
        assert writes.count(LATEST_KEY) == 1

    def test_completed_session_clears(self, controller, store, short_reset):
        controller.start([short_reset])
        controller.advance_step()
        controller.advance_step()
        controller.advance()

        assert controller.status == SessionStatus.COMPLETED
        assert store.keys() == []
