"""
Unit tests for configuration loader (src/config/settings.py)

Tests covering:
- Seed list parsing and environment overlays
- Spot-test mode presets and validation
- YAML/JSON config files validated against the bundled schema
- Precedence: config file over environment over defaults
- Engine factory resolution
"""

import sys

import pytest
import yaml

from src.config.settings import (
    ConfigurationError,
    FULL_COMMANDS_PER_SEED,
    FULL_SEEDS,
    QUICK_COMMANDS_PER_SEED,
    QUICK_SEEDS,
    RecorderConfig,
    SpotTestConfig,
    apply_mode,
    create_default_parity_config,
    create_sample_config,
    find_interpreter_path,
    load_config_file,
    load_engine_factory,
    load_settings,
    load_spot_test_config_from_env,
    parse_seed_list,
    validate_recorder_config,
)
from src.recording.exceptions import RecorderUnavailable
from src.spot_testing.models import CommandType, GameArea


@pytest.fixture
def write_config(tmp_path):
    """Write a YAML config file and return its path."""

    def _write(data, name="parity.yaml"):
        path = tmp_path / name
        path.write_text(yaml.safe_dump(data), encoding="utf-8")
        return str(path)

    return _write


class TestParseSeedList:
    """Tests for comma-separated seed parsing."""

    def test_parses_integers(self):
        """Test seeds are parsed in order."""
        assert parse_seed_list("12345, 67890,54321") == [12345, 67890, 54321]

    def test_rejects_non_integer(self):
        """Test a non-numeric seed is a configuration error."""
        with pytest.raises(ConfigurationError, match="abc"):
            parse_seed_list("12345,abc")

    def test_rejects_empty(self):
        """Test an empty list is a configuration error."""
        with pytest.raises(ConfigurationError):
            parse_seed_list(" , ")


class TestParityConfig:
    """Tests for parity-run defaults and environment overrides."""

    def test_full_defaults(self):
        """Test full mode uses ten seeds of 250 commands."""
        config = create_default_parity_config()
        assert config.seeds == FULL_SEEDS
        assert config.commands_per_seed == FULL_COMMANDS_PER_SEED == 250
        assert config.validate() == []

    def test_quick_defaults(self):
        """Test quick mode uses five seeds of 100 commands."""
        config = create_default_parity_config(quick=True)
        assert config.seeds == QUICK_SEEDS
        assert config.commands_per_seed == QUICK_COMMANDS_PER_SEED == 100

    def test_environment_overrides(self, monkeypatch):
        """Test PARITY_* variables override defaults."""
        monkeypatch.setenv("PARITY_SEEDS", "1,2")
        monkeypatch.setenv("PARITY_COMMANDS_PER_SEED", "10")
        monkeypatch.setenv("PARITY_BASELINE_PATH", "ci/baseline.json")
        monkeypatch.setenv("PARITY_ENGINE_FACTORY", "engine.main:create")

        config = create_default_parity_config()

        assert config.seeds == [1, 2]
        assert config.commands_per_seed == 10
        assert config.baseline_path == "ci/baseline.json"
        assert config.engine_factory == "engine.main:create"

    def test_invalid_environment_integer(self, monkeypatch):
        """Test a malformed integer variable is reported by name."""
        monkeypatch.setenv("PARITY_TIMEOUT_MS", "soon")
        with pytest.raises(ConfigurationError, match="PARITY_TIMEOUT_MS"):
            create_default_parity_config()


class TestSpotTestConfig:
    """Tests for spot-test configuration."""

    def test_defaults_are_valid(self):
        """Test the default configuration validates cleanly."""
        config = SpotTestConfig()
        assert config.command_count == 50
        assert config.pass_threshold == 95.0
        assert config.avoid_game_ending is True
        assert config.validate() == []

    def test_validate_reports_every_error(self):
        """Test validation collects all out-of-range values."""
        config = SpotTestConfig(command_count=0, timeout_ms=400000, pass_threshold=120, seed=-1)
        errors = config.validate()
        assert len(errors) == 4

    def test_command_count_upper_bound(self):
        """Test command_count cannot exceed 1000."""
        assert SpotTestConfig(command_count=1001).validate() == ["command_count cannot exceed 1000"]

    def test_ci_mode_preset(self):
        """Test the CI preset is strict with a 98% threshold."""
        config = apply_mode(SpotTestConfig(seed=7), "ci")
        assert config.command_count == 100
        assert config.timeout_ms == 45000
        assert config.strict_validation is True
        assert config.pass_threshold == 98.0
        assert config.seed == 7

    def test_quick_mode_preset(self):
        """Test the quick preset shortens the run."""
        config = apply_mode(SpotTestConfig(), "quick")
        assert config.command_count == 25
        assert config.quick_mode is True

    def test_unknown_mode(self):
        """Test an unknown preset is rejected."""
        with pytest.raises(ConfigurationError, match="Unknown mode"):
            apply_mode(SpotTestConfig(), "turbo")

    def test_environment_overlay(self, monkeypatch):
        """Test SPOT_TEST_* variables are applied."""
        monkeypatch.setenv("SPOT_TEST_COMMAND_COUNT", "30")
        monkeypatch.setenv("SPOT_TEST_SEED", "42")
        monkeypatch.setenv("SPOT_TEST_STRICT_VALIDATION", "true")
        monkeypatch.setenv("SPOT_TEST_FOCUS_AREAS", "house, maze")
        monkeypatch.setenv("SPOT_TEST_COMMAND_TYPES", "movement")

        config = load_spot_test_config_from_env()

        assert config.command_count == 30
        assert config.seed == 42
        assert config.strict_validation is True
        assert config.focus_areas == [GameArea.HOUSE, GameArea.MAZE]
        assert config.command_types == [CommandType.MOVEMENT]

    def test_environment_invalid_focus_area(self, monkeypatch):
        """Test an unknown focus area is a configuration error."""
        monkeypatch.setenv("SPOT_TEST_FOCUS_AREAS", "volcano")
        with pytest.raises(ConfigurationError):
            load_spot_test_config_from_env()

    def test_summary_mentions_seed(self):
        """Test the summary line marks reproducible runs."""
        assert "Seed: 12345 (reproducible)" in SpotTestConfig(seed=12345).summary()
        assert "Seed: will be generated" in SpotTestConfig().summary()


class TestConfigFile:
    """Tests for config file loading and schema validation."""

    def test_valid_file(self, write_config):
        """Test a valid file loads as a dictionary."""
        path = write_config({"parity": {"seeds": [1, 2], "commands_per_seed": 10}})
        assert load_config_file(path)["parity"]["seeds"] == [1, 2]

    def test_schema_violation(self, write_config):
        """Test unknown keys fail schema validation."""
        path = write_config({"parity": {"seeds": [1], "colour": "blue"}})
        with pytest.raises(ConfigurationError, match="validation failed"):
            load_config_file(path)

    def test_invalid_yaml(self, tmp_path):
        """Test unparsable YAML is a configuration error."""
        path = tmp_path / "broken.yaml"
        path.write_text("parity: [unclosed", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_config_file(str(path))

    def test_missing_file(self, tmp_path):
        """Test a missing file is a configuration error."""
        with pytest.raises(ConfigurationError, match="not found"):
            load_config_file(str(tmp_path / "absent.yaml"))

    def test_empty_file(self, tmp_path):
        """Test an empty file yields no overrides."""
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config_file(str(path)) == {}

    def test_json_file(self, tmp_path):
        """Test JSON is accepted since it is valid YAML."""
        path = tmp_path / "parity.json"
        path.write_text('{"comparison": {"tolerance_threshold": 0.9}}', encoding="utf-8")
        assert load_config_file(str(path))["comparison"]["tolerance_threshold"] == 0.9

    def test_sample_config_validates(self, tmp_path):
        """Test the generated sample config passes the schema."""
        path = create_sample_config(str(tmp_path / "sample.yaml"))
        data = load_config_file(str(path))
        assert data["parity"]["commands_per_seed"] == QUICK_COMMANDS_PER_SEED


class TestLoadSettings:
    """Tests for settings resolution and precedence."""

    def test_defaults_without_file(self):
        """Test settings resolve without a config file."""
        settings = load_settings()
        assert settings.parity.seeds == FULL_SEEDS
        assert settings.comparison.tolerance_threshold == 0.95
        assert settings.notifications.slack_enabled is False
        assert settings.notifications.metrics_enabled is False

    def test_file_overrides_environment(self, monkeypatch, write_config):
        """Test config file values win over environment values."""
        monkeypatch.setenv("PARITY_COMMANDS_PER_SEED", "10")
        monkeypatch.setenv("SPOT_TEST_COMMAND_COUNT", "30")
        path = write_config(
            {
                "parity": {"commands_per_seed": 20},
                "spot_test": {"command_count": 40, "focus_areas": ["forest"]},
                "recorder": {"interpreter_args": ["-p"], "timeout_ms": 2000},
                "comparison": {"ignore_case_in_messages": True},
            }
        )

        settings = load_settings(path)

        assert settings.parity.commands_per_seed == 20
        assert settings.spot_test.command_count == 40
        assert settings.spot_test.focus_areas == [GameArea.FOREST]
        assert settings.recorder.interpreter_args == ("-p",)
        assert settings.recorder.timeout_ms == 2000
        assert settings.comparison.ignore_case_in_messages is True

    def test_environment_used_when_file_silent(self, monkeypatch, write_config):
        """Test environment values survive when the file does not set them."""
        monkeypatch.setenv("PARITY_COMMANDS_PER_SEED", "10")
        settings = load_settings(write_config({"parity": {"seeds": [5]}}))
        assert settings.parity.commands_per_seed == 10
        assert settings.parity.seeds == [5]

    def test_quick_flag(self):
        """Test quick mode reaches the parity section."""
        assert load_settings(quick=True).parity.seeds == QUICK_SEEDS


class TestRecorderConfig:
    """Tests for reference interpreter configuration."""

    def test_interpreter_from_environment(self, monkeypatch):
        """Test ZORK_INTERPRETER_PATH is checked first."""
        monkeypatch.setenv("ZORK_INTERPRETER_PATH", sys.executable)
        assert find_interpreter_path() == sys.executable

    def test_validate_missing_files(self, tmp_path):
        """Test missing interpreter and game file are both reported."""
        config = RecorderConfig(
            interpreter_path=str(tmp_path / "dfrotz"),
            game_file_path=str(tmp_path / "zork1.z3"),
        )
        report = validate_recorder_config(config)
        assert report["valid"] is False
        assert len(report["errors"]) == 2

    def test_validate_warns_on_short_timeout(self, tmp_path):
        """Test a very short timeout is a warning, not an error."""
        game = tmp_path / "zork1.z3"
        game.write_bytes(b"\x03")
        config = RecorderConfig(
            interpreter_path=sys.executable, game_file_path=str(game), timeout_ms=200
        )
        report = validate_recorder_config(config)
        assert report["valid"] is True
        assert report["warnings"]

    def test_missing_interpreter_path(self):
        """Test an unset interpreter path is an error."""
        assert "interpreter_path is required" in RecorderConfig(interpreter_path=None).validate()


class TestLoadEngineFactory:
    """Tests for module:callable engine resolution."""

    def test_resolves_callable(self):
        """Test a valid reference returns the callable."""
        factory = load_engine_factory("collections:OrderedDict")
        assert callable(factory)

    def test_missing_spec(self):
        """Test an unset factory is reported as unavailable."""
        with pytest.raises(RecorderUnavailable, match="No model engine configured"):
            load_engine_factory(None)

    def test_malformed_spec(self):
        """Test a reference without a colon is rejected."""
        with pytest.raises(RecorderUnavailable, match="module:callable"):
            load_engine_factory("collections.OrderedDict")

    def test_unknown_module(self):
        """Test an unimportable module is reported as unavailable."""
        with pytest.raises(RecorderUnavailable, match="Cannot import"):
            load_engine_factory("no_such_engine_module:create")

    def test_not_callable(self):
        """Test a non-callable attribute is rejected."""
        with pytest.raises(RecorderUnavailable, match="not a callable"):
            load_engine_factory("math:pi")
