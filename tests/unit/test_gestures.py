"""
Unit tests for swipe and tap handling on renter rows.
"""

import pytest
from livenzo.rent.gestures import (
    DIRECTION_LEFT, DIRECTION_RIGHT, TAP_OPEN_DETAIL, TAP_OPEN_PHOTOS,
    SwipeGestureInterpreter, SwipeRowController, TapRecognizer
)


class FakeClock:
    def __init__(self, now=100.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms / 1000.0


class TestSwipeGestureInterpreter:
    """Release thresholds: 100px travel or 500px/s velocity."""

    def setup_method(self):
        self.interpreter = SwipeGestureInterpreter()

    def test_short_slow_release_does_nothing(self):
        assert self.interpreter.release(90, 0) is None

    def test_long_right_drag_marks_paid(self):
        intent = self.interpreter.release(150, 0)
        assert intent.direction == DIRECTION_RIGHT
        assert intent.action == 'paid'

    def test_long_left_drag_marks_unpaid(self):
        intent = self.interpreter.release(-150, 0)
        assert intent.direction == DIRECTION_LEFT
        assert intent.action == 'unpaid'

    def test_fast_flick_triggers_with_short_travel(self):
        intent = self.interpreter.release(40, 600)
        assert intent is not None
        assert intent.action == 'paid'

    def test_thresholds_are_exclusive(self):
        assert self.interpreter.release(100, 500) is None

    def test_zero_offset_uses_velocity_direction(self):
        assert self.interpreter.release(0, -700).direction == DIRECTION_LEFT

    @pytest.mark.parametrize('offset,hint', [
        (30, None),
        (50, None),
        (51, DIRECTION_RIGHT),
        (-80, DIRECTION_LEFT),
    ])
    def test_hint(self, offset, hint):
        assert self.interpreter.hint(offset) == hint

    def test_from_config(self):
        interpreter = SwipeGestureInterpreter.from_config({'SWIPE_TRIGGER_OFFSET': 200})
        assert interpreter.release(150, 0) is None
        assert interpreter.trigger_velocity == 500


class TestSwipeRowController:

    def test_successful_swipe_commits_status(self):
        row = SwipeRowController('pending')
        outcome = row.perform(150, 0, lambda action: action)
        assert outcome.triggered and outcome.success
        assert row.status == 'paid'
        assert row.display_status == 'paid'
        assert not row.in_flight

    def test_failed_swipe_reverts(self):
        row = SwipeRowController('paid')

        def submit(action):
            raise RuntimeError('Rent for this month is already paid')

        outcome = row.perform(-150, 0, submit)
        assert outcome.triggered
        assert not outcome.success
        assert 'already paid' in outcome.error
        assert row.display_status == 'paid'

    def test_override_shown_while_in_flight(self):
        row = SwipeRowController('pending')
        row.drag_start()
        row.drag_move(120)
        assert row.hint == DIRECTION_RIGHT
        intent = row.drag_end(120, 0)
        assert intent.action == 'paid'
        assert row.in_flight
        assert row.display_status == 'paid'
        assert row.status == 'pending'

    def test_new_drag_ignored_while_in_flight(self):
        row = SwipeRowController('pending')
        row.drag_start()
        row.drag_end(150, 0)
        assert row.drag_start() is False

        outcome = row.perform(-150, 0, lambda action: action)
        assert outcome.ignored

        row.settle(False)
        assert row.drag_start() is True

    def test_below_threshold_does_not_call_backend(self):
        calls = []
        row = SwipeRowController('pending')
        outcome = row.perform(90, 0, calls.append)
        assert not outcome.triggered
        assert calls == []
        assert row.status == 'pending'

    def test_confirmed_status_wins_over_override(self):
        row = SwipeRowController('pending')
        row.perform(150, 0, lambda action: 'unpaid')
        assert row.status == 'unpaid'


class TestTapRecognizer:

    def setup_method(self):
        self.clock = FakeClock()
        self.taps = TapRecognizer(window_ms=300, clock=self.clock)

    def test_double_tap_opens_detail(self):
        assert self.taps.tap(has_photos=True) is None
        self.clock.advance(200)
        assert self.taps.tap(has_photos=True) == TAP_OPEN_DETAIL
        assert not self.taps.pending

    def test_single_tap_opens_photos_after_window(self):
        self.taps.tap(has_photos=True)
        self.clock.advance(100)
        assert self.taps.poll() is None
        self.clock.advance(250)
        assert self.taps.poll() == TAP_OPEN_PHOTOS

    def test_single_tap_without_photos_does_nothing(self):
        self.taps.tap(has_photos=False)
        self.clock.advance(400)
        assert self.taps.poll() is None
        assert not self.taps.pending

    def test_tap_during_drag_is_dropped(self):
        self.taps.tap(has_photos=True)
        assert self.taps.tap(has_photos=True, dragging=True) is None
        assert not self.taps.pending

    def test_late_second_tap_resolves_first_and_starts_new(self):
        self.taps.tap(has_photos=True)
        self.clock.advance(500)
        assert self.taps.tap(has_photos=False) == TAP_OPEN_PHOTOS
        assert self.taps.pending
