"""Tests for Grbl line parsing and the serial transport's report routing."""

import pytest
import serial

from grbl_shuttle.serial_transport import (
    SerialTransport,
    parse_parser_state,
    parse_setting_line,
    parse_status_report,
)
from grbl_shuttle.utils.exceptions import InvalidParameterError


class RecordingListener:
    def __init__(self):
        self.calls = []

    def settings_report(self, raw):
        self.calls.append(("settings", raw))

    def status_report(self, raw):
        self.calls.append(("status", raw))

    def connection_closed(self):
        self.calls.append(("closed", None))

    def command_echo(self, text):
        self.calls.append(("echo", text))

    def command_ack(self, text):
        self.calls.append(("ack", text))

    def alarm_report(self, text):
        self.calls.append(("alarm", text))

    def of(self, kind):
        return [value for name, value in self.calls if name == kind]


class FakeSerial:
    def __init__(self, fail=False):
        self.is_open = True
        self.fail = fail
        self.written = []

    def write(self, data):
        if self.fail:
            raise serial.SerialException("device gone")
        self.written.append(bytes(data))
        return len(data)

    def close(self):
        self.is_open = False


def _queued(transport):
    lines = []
    while not transport._outgoing_q.empty():
        lines.append(transport._outgoing_q.get_nowait())
    return lines


@pytest.fixture
def listener():
    return RecordingListener()


@pytest.fixture
def link(listener):
    return SerialTransport(listener)


# ---------------------------------------------------------------------------
# Parsers
# ---------------------------------------------------------------------------


class TestParseStatusReport:
    def test_machine_position_with_offset(self):
        status, wco = parse_status_report(
            "<Idle|MPos:1.000,2.000,3.000|Bf:15,128|FS:0,0|WCO:0.500,0.000,-1.000>"
        )
        assert status["activeState"] == "Idle"
        assert status["mpos"] == {"x": "1.000", "y": "2.000", "z": "3.000"}
        assert status["wpos"] == {"x": "0.500", "y": "2.000", "z": "4.000"}
        assert status["buf"] == {"planner": 15, "rx": 128}
        assert status["feedrate"] == 0
        assert wco == (0.5, 0.0, -1.0)

    def test_work_position_uses_cached_offset(self):
        status, wco = parse_status_report("<Hold:0|WPos:1.000,2.000,3.000|Bf:3,100>", (0.5, 0.0, -1.0))
        assert status["activeState"] == "Hold"
        assert status["subState"] == 0
        assert status["mpos"] == {"x": "1.500", "y": "2.000", "z": "2.000"}
        assert wco == (0.5, 0.0, -1.0)

    def test_overrides_and_pins(self):
        status, _ = parse_status_report("<Jog|MPos:0,0,0|FS:500,0|Ov:100,100,100|Pn:PZ>")
        assert status["ov"] == [100, 100, 100]
        assert status["pinState"] == "PZ"
        assert status["feedrate"] == 500

    def test_state_only(self):
        status, _ = parse_status_report("<Alarm>")
        assert status["activeState"] == "Alarm"
        assert "mpos" not in status


class TestParseLines:
    def test_setting(self):
        assert parse_setting_line("$110=1000.000") == ("$110", "1000.000")
        assert parse_setting_line("$22=1\r") == ("$22", "1")

    def test_not_a_setting(self):
        assert parse_setting_line("ok") is None
        assert parse_setting_line("$J=G91 X1") is None

    def test_parser_state(self):
        parser = parse_parser_state("[GC:G0 G54 G17 G21 G90 G94 M5 M9 T0 F100 S0]")
        assert parser["modal"] == ["G0", "G54", "G17", "G21", "G90", "G94", "M5", "M9"]
        assert parser["tool"] == "0"
        assert parser["feedrate"] == "100"
        assert parse_parser_state("[MSG:Reset to continue]") is None


# ---------------------------------------------------------------------------
# Report routing
# ---------------------------------------------------------------------------


class TestReportRouting:
    def test_banner_resynchronizes(self, link, listener):
        link._handle_rx_line("Grbl 1.1h ['$' for help]")
        assert listener.of("status") == [{"status": {"activeState": ""}, "parserstate": None}]
        assert _queued(link) == ["$$", "$G"]

    def test_settings_dump(self, link, listener):
        link._handle_rx_line("Grbl 1.1h ['$' for help]")
        link._handle_rx_line("<Alarm|MPos:0.000,0.000,0.000|Bf:15,128>")
        link._handle_rx_line("$22=1")
        link._handle_rx_line("$110=1000.000")
        link._handle_rx_line("ok")

        assert listener.of("settings") == [{"settings": {"$22": "1", "$110": "1000.000"}}]
        assert listener.of("ack") == ["ok"]
        # Status reports are held back until the settings are known
        assert len(listener.of("status")) == 1

        link._handle_rx_line("[GC:G0 G54 G17 G21 G90 G94 M5 M9 T0 F0 S0]")
        link._handle_rx_line("<Alarm|MPos:0.000,0.000,0.000|Bf:15,128>")
        status = listener.of("status")[-1]
        assert status["status"]["activeState"] == "Alarm"
        assert status["parserstate"]["modal"][0] == "G0"

    def test_rejected_settings_request_is_retried_when_idle(self, link, listener):
        link._handle_rx_line("Grbl 1.1h ['$' for help]")
        assert _queued(link) == ["$$", "$G"]

        # $$ is refused while the machine is moving
        link._handle_rx_line("error:8")
        link._handle_rx_line("[GC:G0 G54 G17 G21 G90 G94 M5 M9 T0 F0 S0]")
        link._handle_rx_line("ok")
        for _ in range(3):
            link._handle_rx_line("<Run|MPos:1.000,2.000,3.000|Bf:10,100>")

        statuses = listener.of("status")[1:]
        assert len(statuses) == 3
        assert statuses[-1]["status"]["activeState"] == "Run"
        assert _queued(link) == []

        link._handle_rx_line("<Idle|MPos:1.000,2.000,3.000|Bf:15,128>")
        assert _queued(link) == ["$$"]
        link._handle_rx_line("<Idle|MPos:1.000,2.000,3.000|Bf:15,128>")
        assert _queued(link) == []

        link._handle_rx_line("$110=1000.000")
        link._handle_rx_line("ok")
        assert listener.of("settings") == [{"settings": {"$110": "1000.000"}}]
        assert len(listener.of("status")) == 6

    def test_errors_and_alarms(self, link, listener):
        link._handle_rx_line("error:20")
        link._handle_rx_line("ALARM:1")
        assert listener.of("ack") == ["error:20"]
        assert listener.of("alarm") == ["ALARM:1"]

    def test_ack_frees_buffer(self, link):
        link._inflight.append(120)
        assert not link._has_room(10)
        link._handle_rx_line("ok")
        assert link._has_room(10)


# ---------------------------------------------------------------------------
# Outbound
# ---------------------------------------------------------------------------


class TestOutbound:
    def test_not_connected(self, link):
        assert not link.is_connected()
        link.send_feedhold()
        link.send_command("   ")
        assert _queued(link) == []

    def test_realtime_bytes(self, link):
        link.ser = FakeSerial()
        link.send_jog_cancel()
        link.send_feedhold()
        link.send_reset()
        assert link.ser.written == [b"\x85", b"!", b"\x18"]

    def test_reset_drops_queued_commands(self, link):
        link.ser = FakeSerial()
        link.send_command("G0 X1")
        link._inflight.append(10)
        link.send_reset()
        assert _queued(link) == []
        assert not link._inflight

    def test_write_failure_is_connection_loss(self, link, listener):
        link.ser = FakeSerial(fail=True)
        link.send_feedhold()
        assert listener.of("closed") == [None]
        assert not link.is_connected()

    def test_connect_validates_parameters(self, link):
        with pytest.raises(InvalidParameterError):
            link.connect("", 115200)
        with pytest.raises(InvalidParameterError):
            link.connect("/dev/ttyUSB0", 1234)
