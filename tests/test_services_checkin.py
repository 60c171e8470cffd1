"""
Unit tests for calmflow.services.checkin module.
"""
import pytest
from unittest.mock import Mock

from calmflow.schemas.checkin import AdjustmentType, CheckInResponse, CheckInState, CheckInTrigger
from calmflow.services.checkin import (
    ACTION_CONTINUE, ACTION_PAUSE_OK, ACTION_SLOW_DOWN, CheckInController,
)
from calmflow.services.clock import PHASE_BEGINNING, PHASE_MIDDLE
from calmflow.services.events import CHECK_IN_TRIGGERED, EventBus


@pytest.fixture
def attached(check_in):
    controller = Mock()
    check_in.attach(controller)
    return controller


class TestShouldTrigger:
    """Test the automatic trigger rule."""

    def test_triggers_in_window(self, check_in):
        assert check_in.should_trigger(500, 1000) is True

    def test_not_before_window(self, check_in):
        assert check_in.should_trigger(390, 1000) is False

    def test_not_after_window(self, check_in):
        assert check_in.should_trigger(710, 1000) is False

    def test_window_edges_inclusive(self, check_in):
        assert check_in.should_trigger(400, 1000) is True
        assert check_in.should_trigger(700, 1000) is True

    def test_needs_min_time(self, check_in):
        """Test 0.5 progress of a 300s session is only 150s in."""
        assert check_in.should_trigger(150, 300) is False

    def test_min_time_configurable(self, events, clock):
        quick = CheckInController(events=events, clock=clock, min_time_before_check_in=60)
        assert quick.should_trigger(150, 300) is True

    def test_only_once(self, check_in):
        check_in.trigger(CheckInTrigger.USER_PAUSE)
        check_in.dismiss()
        assert check_in.should_trigger(500, 1000) is False

    def test_since_last_check_in_uses_wall_clock(self, check_in, clock):
        check_in.state.last_check_in_at = clock()
        clock.advance(60)
        assert check_in.should_trigger(500, 1000) is False


class TestObserve:
    """Test observe()."""

    def test_observe_triggers_and_emits(self, check_in, events):
        handler = Mock()
        events.subscribe(CHECK_IN_TRIGGERED, handler)

        assert check_in.observe(500, 1000) is True
        assert check_in.state.pending is True
        assert check_in.state.checkins_shown == 1
        assert check_in.state.trigger == CheckInTrigger.TIME_ELAPSED
        handler.assert_called_once()
        assert handler.call_args.args[1]["trigger"] == "time_elapsed"

    def test_observe_tracks_phase(self, check_in):
        check_in.observe(10, 1000)
        assert check_in.phase == PHASE_BEGINNING
        check_in.observe(300, 1000)
        assert check_in.phase == PHASE_MIDDLE

    def test_disabled(self, events, clock):
        off = CheckInController(events=events, clock=clock, auto_check_in=False)
        assert off.observe(500, 1000) is False
        assert off.state.checkins_shown == 0

    def test_not_while_pending(self, check_in):
        check_in.state.pending = True
        assert check_in.observe(500, 1000) is False


class TestRespond:
    """Test respond() pacing policy and forwarding."""

    def test_struggling_slows_down(self, check_in):
        check_in.respond(CheckInResponse(feeling="struggling"))
        assert check_in.state.adaptive_pacing == pytest.approx(0.8)

    def test_better_extend_speeds_up(self, check_in):
        check_in.respond(CheckInResponse(feeling="better", wants_to_adjust=True, adjustment_type="extend"))
        assert check_in.state.adaptive_pacing == pytest.approx(1.1)

    def test_same_is_unchanged(self, check_in):
        check_in.respond(CheckInResponse(feeling="same"))
        assert check_in.state.adaptive_pacing == 1.0

    def test_better_without_extend_unchanged(self, check_in):
        check_in.respond(CheckInResponse(feeling="better"))
        assert check_in.state.adaptive_pacing == 1.0

    def test_pacing_clamped_low(self, check_in):
        for _ in range(10):
            check_in.respond(CheckInResponse(feeling="struggling"))
        assert check_in.state.adaptive_pacing == 0.5

    def test_pacing_clamped_high(self, check_in):
        for _ in range(10):
            check_in.respond(CheckInResponse(feeling="better", adjustment_type="extend"))
        assert check_in.state.adaptive_pacing == 1.5

    def test_respond_clears_pending(self, check_in):
        check_in.trigger()
        check_in.respond(CheckInResponse(feeling="same"))
        assert check_in.state.pending is False
        assert check_in.state.trigger is None
        assert check_in.state.last_response.feeling == "same"

    def test_adaptations_recorded(self, check_in):
        check_in.respond(CheckInResponse(feeling="same", adjustment_type="change_pace"))
        check_in.respond(CheckInResponse(feeling="same"))
        assert check_in.state.adaptations == [AdjustmentType.CHANGE_PACE]

    def test_end_early_abandons(self, check_in, attached):
        result = check_in.respond(CheckInResponse(feeling="struggling", adjustment_type="end_early"))
        attached.abandon.assert_called_once()
        assert result == AdjustmentType.END_EARLY

    def test_take_break_pauses(self, check_in, attached):
        check_in.respond(CheckInResponse(feeling="struggling", adjustment_type="take_break"))
        attached.pause.assert_called_once()

    def test_shorten_forwarded(self, check_in, attached):
        check_in.respond(CheckInResponse(feeling="same", adjustment_type="shorten"))
        attached.shorten.assert_called_once()

    def test_extend_not_forwarded(self, check_in, attached):
        result = check_in.respond(CheckInResponse(feeling="better", adjustment_type="extend"))
        assert result is None
        attached.abandon.assert_not_called()
        attached.pause.assert_not_called()

    def test_no_controller_attached(self, check_in):
        assert check_in.respond(CheckInResponse(feeling="same", adjustment_type="end_early")) is None


class TestSuggestedAction:
    """Test suggested_action hint keys."""

    def test_none_before_response(self, check_in):
        assert check_in.suggested_action() is None

    @pytest.mark.parametrize("feeling,adjustment,expected", [
        ("struggling", None, ACTION_SLOW_DOWN),
        ("struggling", "take_break", ACTION_PAUSE_OK),
        ("better", "extend", ACTION_CONTINUE),
        ("same", None, None),
    ])
    def test_hints(self, check_in, feeling, adjustment, expected):
        check_in.respond(CheckInResponse(feeling=feeling, adjustment_type=adjustment))
        assert check_in.suggested_action() == expected


class TestStateLifecycle:
    """Test reset / load keep the shared state object."""

    def test_reset_keeps_identity(self, check_in):
        state = check_in.state
        check_in.respond(CheckInResponse(feeling="struggling"))
        check_in.trigger()
        check_in.reset()

        assert check_in.state is state
        assert state.adaptive_pacing == 1.0
        assert state.checkins_shown == 0

    def test_load(self, check_in):
        state = check_in.state
        check_in.load(CheckInState(checkins_shown=1, adaptive_pacing=0.8))
        assert check_in.state is state
        assert state.checkins_shown == 1
        assert state.adaptive_pacing == 0.8

    def test_base_pacing_clamped(self, events):
        assert CheckInController(events=events, base_pacing=3.0).state.adaptive_pacing == 1.5
