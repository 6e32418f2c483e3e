"""Tests for pendant configuration load/save/validate."""

import json

import pytest

from grbl_shuttle.utils.config import DEFAULT_CONFIG, PendantConfig, get_config_path
from grbl_shuttle.utils.exceptions import ConfigLoadError, ConfigValidationError


class TestPendantConfig:
    def test_defaults_without_file(self, config):
        assert config.load() is False
        assert config.step_distances == [0.01, 0.1, 1.0, 10.0]
        assert config.latency == 0.2
        assert config.hold_ms == 1000
        assert config.reversed_axes() == {"X": False, "Y": False, "Z": False}
        assert config.button_roles()["4"] == "probe"
        assert config.validate()

    def test_round_trip(self, config):
        config.set("reverse_z", True)
        config.set("joystick.index", 2)
        config.save()

        loaded = PendantConfig(config.filepath)
        assert loaded.load() is True
        assert loaded.get("reverse_z") is True
        assert loaded.get("joystick.index") == 2
        assert loaded.get("joystick.shuttle_axis") == 0

    def test_partial_file_is_merged_with_defaults(self, config):
        with open(config.filepath, "w", encoding="utf-8") as f:
            json.dump({"hard_max_feed": {"X": 500}, "plate_thickness": 12.5}, f)
        config.load()
        assert config.hard_max_feed() == {"X": 500.0, "Y": 1000.0, "Z": 250.0}
        assert config.get("plate_thickness") == 12.5
        assert config.get("probe_feedrate") == DEFAULT_CONFIG["probe_feedrate"]

    def test_saved_button_map_replaces_defaults(self, config):
        with open(config.filepath, "w", encoding="utf-8") as f:
            json.dump({"buttons": {"7": "probe"}}, f)
        config.load()
        assert config.button_roles() == {"7": "probe"}

    def test_missing_button_map_uses_defaults(self, config):
        with open(config.filepath, "w", encoding="utf-8") as f:
            json.dump({"plate_thickness": 12.5}, f)
        config.load()
        assert config.button_roles() == DEFAULT_CONFIG["buttons"]

    def test_invalid_json(self, config):
        with open(config.filepath, "w", encoding="utf-8") as f:
            f.write("{not json")
        with pytest.raises(ConfigLoadError):
            config.load()

    def test_non_object_json(self, config):
        with open(config.filepath, "w", encoding="utf-8") as f:
            f.write("[1, 2]")
        with pytest.raises(ConfigLoadError):
            config.load()

    def test_backup_written_on_second_save(self, config, tmp_path):
        config.save()
        config.set("latency", 0.3)
        config.save()
        assert (tmp_path / "grbl_shuttle.json.backup").exists()

    def test_get_missing(self, config):
        assert config.get("joystick.missing", "x") == "x"
        assert config.get("nope") is None

    @pytest.mark.parametrize(
        "key, value",
        [
            ("step_distances", []),
            ("step_distances", [0.1, -1]),
            ("latency", 0),
            ("hold_ms", -5),
            ("baud_rate", 1234),
            ("buttons", {"0": "W"}),
            ("hard_max_feed", {"X": 1000, "Y": 1000}),
        ],
    )
    def test_validation_errors(self, config, key, value):
        config.set(key, value)
        with pytest.raises(ConfigValidationError):
            config.validate()

    def test_reset_to_defaults(self, config):
        config.set("latency", 1.0)
        config.reset_to_defaults()
        assert config.latency == 0.2


class TestConfigPath:
    def test_env_override(self, monkeypatch, tmp_path):
        monkeypatch.setenv("GRBL_SHUTTLE_CONFIG_DIR", str(tmp_path / "cfg"))
        path = get_config_path()
        assert path == str(tmp_path / "cfg" / "grbl_shuttle.json")
        assert (tmp_path / "cfg").is_dir()
