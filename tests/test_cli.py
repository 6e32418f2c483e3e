"""Tests for the command line entry point (no hardware involved)."""

import pytest

from grbl_shuttle import cli
from grbl_shuttle.serial_transport import SerialTransport


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch, tmp_path):
    monkeypatch.setattr(cli, "setup_logging", lambda verbosity: None)
    monkeypatch.setenv("GRBL_SHUTTLE_CONFIG_DIR", str(tmp_path))


class TestParser:
    def test_options(self):
        args = cli._build_parser().parse_args(["-vv", "-p", "/dev/ttyACM0", "-b", "9600", "-j", "1"])
        assert args.verbose == 2
        assert args.port == "/dev/ttyACM0"
        assert args.baudrate == 9600
        assert args.joystick == 1

    def test_defaults(self):
        args = cli._build_parser().parse_args([])
        assert args.verbose == 0
        assert args.port is None
        assert args.config is None


class TestMain:
    def test_list_ports(self, monkeypatch, capsys):
        monkeypatch.setattr(SerialTransport, "list_ports", staticmethod(lambda: ["/dev/ttyUSB0", "COM3"]))
        assert cli.main(["--list-ports"]) == 0
        assert capsys.readouterr().out.split() == ["/dev/ttyUSB0", "COM3"]

    def test_missing_port(self):
        assert cli.main([]) == 2

    def test_bad_config(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{oops", encoding="utf-8")
        assert cli.main(["--config", str(path), "--port", "/dev/ttyUSB0"]) == 2

    def test_invalid_config_value(self, tmp_path):
        path = tmp_path / "cfg.json"
        path.write_text('{"latency": -1}', encoding="utf-8")
        assert cli.main(["--config", str(path), "--port", "/dev/ttyUSB0"]) == 2
