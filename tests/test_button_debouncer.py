"""Tests for tap / hold classification."""

import pytest

from grbl_shuttle.button_debouncer import ButtonDebouncer

from conftest import snapshot


@pytest.fixture
def buttons(scheduler, tracker):
    tracker.update(snapshot("Idle"))
    debouncer = ButtonDebouncer(scheduler, tracker, hold_ms=1000)
    debouncer.events = []
    debouncer.on("tap", lambda b: debouncer.events.append(("tap", b)))
    debouncer.on("hold", lambda b: debouncer.events.append(("hold", b)))
    return debouncer


class TestButtonDebouncer:
    def test_short_press_is_tap(self, buttons, scheduler):
        buttons.press("X")
        scheduler.advance(500)
        buttons.release("X")
        assert buttons.events == [("tap", "X")]
        assert scheduler.pending() == 0

    def test_long_press_is_hold_only(self, buttons, scheduler):
        buttons.press("X")
        scheduler.advance(999)
        assert buttons.events == []
        scheduler.advance(2)
        assert buttons.events == [("hold", "X")]
        scheduler.advance(2000)
        buttons.release("X")
        assert buttons.events == [("hold", "X")]

    def test_tap_ignored_when_not_idle(self, buttons, scheduler, tracker):
        tracker.update(snapshot("Run"))
        buttons.press("step")
        scheduler.advance(100)
        buttons.release("step")
        assert buttons.events == []

    def test_hold_fires_in_any_state(self, buttons, scheduler, tracker):
        tracker.update(snapshot("Run"))
        buttons.press("probe")
        scheduler.advance(1000)
        assert buttons.events == [("hold", "probe")]

    def test_buttons_are_independent(self, buttons, scheduler):
        buttons.press("X")
        scheduler.advance(600)
        buttons.press("Y")
        scheduler.advance(500)
        buttons.release("Y")
        buttons.release("X")
        assert buttons.events == [("hold", "X"), ("tap", "Y")]

    def test_repeated_press_does_not_rearm(self, buttons, scheduler):
        buttons.press("Z")
        scheduler.advance(600)
        buttons.press("Z")
        scheduler.advance(500)
        assert buttons.events == [("hold", "Z")]

    def test_release_without_press(self, buttons):
        buttons.release("X")
        assert buttons.events == []

    def test_next_press_after_hold_starts_fresh(self, buttons, scheduler):
        buttons.press("X")
        scheduler.advance(1500)
        buttons.release("X")
        buttons.press("X")
        scheduler.advance(100)
        buttons.release("X")
        assert buttons.events == [("hold", "X"), ("tap", "X")]
        assert not buttons.is_pressed("X")
