"""Tests for session wiring and button-role dispatch."""

import pytest

from grbl_shuttle.pendant import Pendant

from conftest import GRBL_SETTINGS, snapshot, wait_for


@pytest.fixture
def display():
    return []


@pytest.fixture
def pendant(config, scheduler, transport, display):
    p = Pendant(config, scheduler, transport, display=lambda event, value: display.append((event, value)))
    p.listener.settings_report({"settings": dict(GRBL_SETTINGS)})
    p.listener.status_report(snapshot("Idle", mpos=(0, 0, -5)))
    return p


def _tap(pendant, scheduler, button):
    pendant.button_press(button)
    scheduler.advance(100)
    pendant.button_release(button)


def _hold(pendant, scheduler, button):
    pendant.button_press(button)
    scheduler.advance(1000)
    pendant.button_release(button)


class TestButtonRoles:
    def test_tap_selects_axis(self, pendant, scheduler):
        _tap(pendant, scheduler, 1)
        assert pendant.jogger.axis == "Y"
        _tap(pendant, scheduler, 2)
        assert pendant.jogger.axis == "Z"

    def test_tap_advances_step(self, pendant, scheduler):
        _tap(pendant, scheduler, 3)
        assert pendant.jogger.step_distance == 0.1

    def test_hold_zeroes_axis(self, pendant, scheduler, transport):
        _hold(pendant, scheduler, 0)
        assert transport.sent == ["G10 L20 P1 X0"]
        assert pendant.jogger.axis == "X"

    def test_hold_zero_ignored_when_busy(self, pendant, scheduler, transport):
        pendant.listener.status_report(snapshot("Run", mpos=(0, 0, -5)))
        _hold(pendant, scheduler, 2)
        assert transport.sent == []

    def test_hold_resets_step(self, pendant, scheduler):
        _tap(pendant, scheduler, 3)
        _tap(pendant, scheduler, 3)
        _hold(pendant, scheduler, 3)
        assert pendant.jogger.step_index == 0

    def test_unmapped_button(self, pendant, scheduler, transport):
        _tap(pendant, scheduler, 9)
        _hold(pendant, scheduler, 9)
        assert transport.sent == []

    def test_probe_then_halt(self, pendant, scheduler, transport):
        pendant.button_press(4)
        scheduler.advance(1000)
        assert wait_for(lambda: len(transport.sent) == 8)
        assert transport.sent[0] == "G91"
        pendant.button_release(4)

        _hold(pendant, scheduler, 4)
        assert wait_for(lambda: "<feedhold>" in transport.sent)

        pendant.listener.connection_closed()
        pendant.prober.join(2.0)
        assert wait_for(lambda: not pendant.prober.in_progress)


class TestJogInputs:
    def test_jog_wheel(self, pendant, transport):
        pendant.jog_wheel(1)
        assert transport.sent == ["$J=G91 G21 X0.010 F900"]

    def test_shuttle(self, pendant, scheduler, transport):
        pendant.shuttle(1)
        scheduler.advance(200)
        pendant.shuttle(0)
        scheduler.advance(200)
        assert transport.sent == ["$J=G91 G21 X0.400 F60", "$J=G91 G21 X0.200 F60", "<jog-cancel>"]

    def test_reversed_axis_from_config(self, config, scheduler, transport):
        config.set("reverse_x", True)
        pendant = Pendant(config, scheduler, transport)
        pendant.listener.settings_report({"settings": dict(GRBL_SETTINGS)})
        pendant.listener.status_report(snapshot("Idle"))
        pendant.jog_wheel(1)
        assert transport.sent == ["$J=G91 G21 X-0.010 F900"]

    def test_alarm_aborts_shuttle(self, pendant, scheduler, transport):
        pendant.shuttle(3)
        pendant.listener.alarm_report("ALARM:2")
        assert not pendant.jogger.shuttle_active
        scheduler.advance(1000)
        assert len(transport.sent) == 1


class TestDisplay:
    def test_state_and_jog_events(self, pendant, scheduler, display):
        assert ("active_state_changed", "Idle") in display
        assert ("mpos_changed", (0.0, 0.0, -5.0)) in display
        _tap(pendant, scheduler, 1)
        assert ("axis_changed", "Y") in display

    def test_errors_and_alarms(self, pendant, display):
        pendant.listener.command_ack("error:9")
        pendant.listener.alarm_report("ALARM:1")
        assert ("error", "error:9") in display
        assert ("alarm", "ALARM:1") in display

    def test_connection_closed(self, pendant, display):
        pendant.listener.connection_closed()
        assert ("connection_closed", None) in display
        assert ("active_state_changed", "") in display

    def test_transport_attached_later(self, config, scheduler, transport):
        pendant = Pendant(config, scheduler)
        pendant.listener.settings_report({"settings": dict(GRBL_SETTINGS)})
        pendant.listener.status_report(snapshot("Idle"))
        pendant.jog_wheel(1)
        pendant.attach(transport)
        pendant.jog_wheel(1)
        assert transport.sent == ["$J=G91 G21 X0.010 F900"]
