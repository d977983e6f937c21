"""
Configuration loader for the parity engine

Builds recorder, comparison, spot-test and parity-run settings from
defaults, environment variables and an optional YAML/JSON file that is
validated against a JSON schema.
"""

import dataclasses
import importlib
import json
import logging
import os
import shutil
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import jsonschema
import yaml

from src.comparison.models import ComparisonOptions
from src.recording.exceptions import RecorderUnavailable
from src.spot_testing.models import CommandType, GameArea, parse_enum_list

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Exception raised for configuration-related errors."""

    pass


SCHEMA_DIR = Path(__file__).resolve().parent / "schemas"

# Reference interpreter discovery order (after ZORK_INTERPRETER_PATH)
DEFAULT_INTERPRETER_PATHS = (
    "/usr/local/bin/dfrotz",
    "/usr/bin/dfrotz",
    "/opt/homebrew/bin/dfrotz",
    "dfrotz",
)
DEFAULT_INTERPRETER_ARGS = ("-p", "-w", "80", "-h", "24")
DEFAULT_GAME_FILE_PATH = "reference/COMPILED/zork1.z3"
DEFAULT_RECORDER_TIMEOUT_MS = 5000
DEFAULT_KILL_TIMEOUT_MS = 1000
DEFAULT_SEED = 12345

DEFAULT_BASELINE_PATH = "parity-baseline.json"
QUICK_SEEDS = [12345, 67890, 54321, 99999, 11111]
FULL_SEEDS = [12345, 67890, 54321, 99999, 11111, 22222, 33333, 44444, 55555, 77777]
QUICK_COMMANDS_PER_SEED = 100
FULL_COMMANDS_PER_SEED = 250
DEFAULT_PARITY_TIMEOUT_MS = 300000

MAX_COMMAND_COUNT = 1000
MAX_TIMEOUT_MS = 300000
MAX_SEED = 1000000


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.lower() == "true"


def _env_int(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw, 10)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from e


def _env_float(name: str) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from e


def _env_list(name: str) -> Optional[List[str]]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return None
    return [item.strip() for item in raw.split(",") if item.strip()]


def parse_seed_list(raw: str) -> List[int]:
    """Parse ``"12345,67890"`` into integers."""
    seeds: List[int] = []
    for item in raw.split(","):
        item = item.strip()
        if not item:
            continue
        try:
            seeds.append(int(item, 10))
        except ValueError as e:
            raise ConfigurationError(f"Invalid seed {item!r}: seeds must be integers") from e
    if not seeds:
        raise ConfigurationError("At least one seed is required")
    return seeds


# ------------------------------------------------------------------ #
# Recorder configuration
# ------------------------------------------------------------------ #


@dataclass
class RecorderConfig:
    """Settings for the reference interpreter session."""

    interpreter_path: Optional[str]
    game_file_path: str = DEFAULT_GAME_FILE_PATH
    timeout_ms: int = DEFAULT_RECORDER_TIMEOUT_MS
    kill_timeout_ms: int = DEFAULT_KILL_TIMEOUT_MS
    interpreter_args: Tuple[str, ...] = DEFAULT_INTERPRETER_ARGS

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["interpreter_args"] = list(self.interpreter_args)
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    def validate(self) -> List[str]:
        """Validate configuration values. Returns list of errors."""
        errors: List[str] = []
        if not self.interpreter_path:
            errors.append("interpreter_path is required")
        if not self.game_file_path:
            errors.append("game_file_path is required")
        if self.timeout_ms <= 0:
            errors.append("timeout_ms must be > 0")
        if self.kill_timeout_ms <= 0:
            errors.append("kill_timeout_ms must be > 0")
        return errors


def resolve_executable(candidate: str) -> Optional[str]:
    if os.path.sep in candidate:
        return candidate if os.path.isfile(candidate) else None
    return shutil.which(candidate)


def find_interpreter_path() -> Optional[str]:
    """
    Locate the reference interpreter.

    Checks ZORK_INTERPRETER_PATH first, then the usual install locations,
    then PATH. Nothing is cached; call again after installing dfrotz.

    Returns:
        Absolute path of the first interpreter found, or None
    """
    env_path = os.getenv("ZORK_INTERPRETER_PATH")
    if env_path:
        resolved = resolve_executable(env_path)
        if resolved:
            return resolved
        logger.warning(f"ZORK_INTERPRETER_PATH does not point to a file: {env_path}")

    for candidate in DEFAULT_INTERPRETER_PATHS:
        resolved = resolve_executable(candidate)
        if resolved:
            return resolved

    return None


def create_default_recorder_config() -> RecorderConfig:
    """Create recorder configuration from environment and defaults."""
    return RecorderConfig(
        interpreter_path=find_interpreter_path(),
        game_file_path=os.getenv("ZORK_GAME_FILE_PATH", DEFAULT_GAME_FILE_PATH),
        timeout_ms=_env_int("ZORK_RECORDER_TIMEOUT_MS") or DEFAULT_RECORDER_TIMEOUT_MS,
    )


def get_default_seed() -> int:
    return _env_int("ZORK_DEFAULT_SEED") or DEFAULT_SEED


def validate_recorder_config(config: RecorderConfig) -> Dict[str, Any]:
    """
    Check that the reference interpreter can actually be used.

    Returns:
        Dict with ``valid`` flag plus ``errors`` and ``warnings`` lists
    """
    errors = config.validate()
    warnings: List[str] = []

    if config.interpreter_path and not resolve_executable(config.interpreter_path):
        errors.append(f"Interpreter not found: {config.interpreter_path}")
    if config.game_file_path and not os.path.isfile(config.game_file_path):
        errors.append(f"Game file not found: {config.game_file_path}")

    if 0 < config.timeout_ms < 1000:
        warnings.append("timeout_ms below 1000ms may cut off slow interpreter responses")
    if config.timeout_ms > 60000:
        warnings.append("timeout_ms above 60000ms makes hung sessions slow to detect")

    return {"valid": not errors, "errors": errors, "warnings": warnings}


# ------------------------------------------------------------------ #
# Spot-test configuration
# ------------------------------------------------------------------ #


@dataclass
class SpotTestConfig:
    """Configuration for a single spot-test run."""

    command_count: int = 50
    seed: Optional[int] = None
    timeout_ms: int = 30000
    quick_mode: bool = False
    focus_areas: List[GameArea] = field(default_factory=list)
    command_types: List[CommandType] = field(default_factory=list)
    avoid_game_ending: bool = True
    strict_validation: bool = False
    pass_threshold: float = 95.0
    verbose: bool = False

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["focus_areas"] = [area.value for area in self.focus_areas]
        data["command_types"] = [ctype.value for ctype in self.command_types]
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)

    def validate(self) -> List[str]:
        """Validate configuration values. Returns list of errors."""
        errors: List[str] = []

        if self.command_count <= 0:
            errors.append("command_count must be greater than 0")
        elif self.command_count > MAX_COMMAND_COUNT:
            errors.append(f"command_count cannot exceed {MAX_COMMAND_COUNT}")

        if self.timeout_ms <= 0:
            errors.append("timeout_ms must be greater than 0")
        elif self.timeout_ms > MAX_TIMEOUT_MS:
            errors.append(f"timeout_ms cannot exceed {MAX_TIMEOUT_MS}ms (5 minutes)")

        if not 0 <= self.pass_threshold <= 100:
            errors.append("pass_threshold must be between 0 and 100")

        if self.seed is not None and not 0 <= self.seed <= MAX_SEED:
            errors.append(f"seed must be between 0 and {MAX_SEED}")

        for area in self.focus_areas:
            if not isinstance(area, GameArea):
                errors.append(f"Invalid focus area: {area}")
        for ctype in self.command_types:
            if not isinstance(ctype, CommandType):
                errors.append(f"Invalid command type: {ctype}")

        return errors

    def summary(self) -> str:
        """One-line description for logs and report headers."""
        parts = [
            f"Commands: {self.command_count}",
            f"Timeout: {self.timeout_ms}ms",
            f"Mode: {'Quick' if self.quick_mode else 'Standard'}",
        ]
        if self.seed is not None:
            parts.append(f"Seed: {self.seed} (reproducible)")
        else:
            parts.append("Seed: will be generated")
        if self.focus_areas:
            parts.append("Focus: " + ", ".join(a.value for a in self.focus_areas))
        if self.command_types:
            parts.append("Types: " + ", ".join(t.value for t in self.command_types))
        parts.append(f"Pass Threshold: {self.pass_threshold}%")
        return ", ".join(parts)


MODE_PRESETS: Dict[str, Dict[str, Any]] = {
    "quick": {"command_count": 25, "timeout_ms": 15000, "quick_mode": True, "strict_validation": False},
    "standard": {"command_count": 50, "timeout_ms": 30000, "quick_mode": False},
    "thorough": {"command_count": 200, "timeout_ms": 60000, "quick_mode": False, "strict_validation": True},
    "ci": {
        "command_count": 100,
        "timeout_ms": 45000,
        "quick_mode": False,
        "strict_validation": True,
        "verbose": False,
        "pass_threshold": 98.0,
    },
}


def apply_mode(config: SpotTestConfig, mode: str) -> SpotTestConfig:
    """Return a copy of ``config`` with a preset applied."""
    if mode not in MODE_PRESETS:
        raise ConfigurationError(
            f"Unknown mode {mode!r}. Expected one of: {', '.join(MODE_PRESETS)}"
        )
    return dataclasses.replace(config, **MODE_PRESETS[mode])


def load_spot_test_config_from_env(base: Optional[SpotTestConfig] = None) -> SpotTestConfig:
    """
    Overlay SPOT_TEST_* environment variables on ``base``.

    Raises:
        ConfigurationError: If a variable cannot be parsed
    """
    config = dataclasses.replace(base) if base is not None else SpotTestConfig()
    updates: Dict[str, Any] = {}

    command_count = _env_int("SPOT_TEST_COMMAND_COUNT")
    if command_count is not None:
        updates["command_count"] = command_count

    seed = _env_int("SPOT_TEST_SEED")
    if seed is not None:
        updates["seed"] = seed

    timeout_ms = _env_int("SPOT_TEST_TIMEOUT")
    if timeout_ms is not None:
        updates["timeout_ms"] = timeout_ms

    threshold = _env_float("SPOT_TEST_PASS_THRESHOLD")
    if threshold is not None:
        updates["pass_threshold"] = threshold

    for env_name, attr in (
        ("SPOT_TEST_QUICK_MODE", "quick_mode"),
        ("SPOT_TEST_AVOID_GAME_ENDING", "avoid_game_ending"),
        ("SPOT_TEST_STRICT_VALIDATION", "strict_validation"),
        ("SPOT_TEST_VERBOSE", "verbose"),
    ):
        if os.getenv(env_name) is not None:
            updates[attr] = _env_flag(env_name)

    try:
        focus = _env_list("SPOT_TEST_FOCUS_AREAS")
        if focus is not None:
            updates["focus_areas"] = parse_enum_list(focus, GameArea)
        types = _env_list("SPOT_TEST_COMMAND_TYPES")
        if types is not None:
            updates["command_types"] = parse_enum_list(types, CommandType)
    except ValueError as e:
        raise ConfigurationError(f"Invalid spot-test environment value: {e}") from e

    return dataclasses.replace(config, **updates)


# ------------------------------------------------------------------ #
# Parity run configuration
# ------------------------------------------------------------------ #


@dataclass
class ParityValidationConfig:
    """Configuration for a multi-seed parity validation run."""

    seeds: List[int] = field(default_factory=lambda: list(FULL_SEEDS))
    commands_per_seed: int = FULL_COMMANDS_PER_SEED
    timeout_ms: int = DEFAULT_PARITY_TIMEOUT_MS
    baseline_path: str = DEFAULT_BASELINE_PATH
    engine_factory: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def validate(self) -> List[str]:
        errors: List[str] = []
        if not self.seeds:
            errors.append("at least one seed is required")
        if any(seed < 0 for seed in self.seeds):
            errors.append("seeds must be non-negative")
        if self.commands_per_seed <= 0:
            errors.append("commands_per_seed must be > 0")
        if self.timeout_ms <= 0:
            errors.append("timeout_ms must be > 0")
        if not self.baseline_path:
            errors.append("baseline_path is required")
        return errors


def create_default_parity_config(quick: bool = False) -> ParityValidationConfig:
    """Create parity-run configuration from environment and defaults."""
    config = ParityValidationConfig(
        seeds=list(QUICK_SEEDS if quick else FULL_SEEDS),
        commands_per_seed=QUICK_COMMANDS_PER_SEED if quick else FULL_COMMANDS_PER_SEED,
        baseline_path=os.getenv("PARITY_BASELINE_PATH", DEFAULT_BASELINE_PATH),
        engine_factory=os.getenv("PARITY_ENGINE_FACTORY") or None,
    )

    seeds_raw = os.getenv("PARITY_SEEDS")
    if seeds_raw:
        config.seeds = parse_seed_list(seeds_raw)

    commands = _env_int("PARITY_COMMANDS_PER_SEED")
    if commands is not None:
        config.commands_per_seed = commands

    timeout_ms = _env_int("PARITY_TIMEOUT_MS")
    if timeout_ms is not None:
        config.timeout_ms = timeout_ms

    return config


@dataclass
class NotificationSettings:
    """Optional Slack and CloudWatch reporting of parity runs."""

    slack_enabled: bool = False
    slack_webhook_url: Optional[str] = None
    metrics_enabled: bool = False
    metrics_region: str = "us-east-1"


def create_default_notification_settings() -> NotificationSettings:
    return NotificationSettings(
        slack_enabled=_env_flag("PARITY_SLACK_ENABLED"),
        slack_webhook_url=os.getenv("SLACK_WEBHOOK_URL") or None,
        metrics_enabled=_env_flag("PARITY_METRICS_ENABLED"),
        metrics_region=os.getenv("AWS_REGION", os.getenv("AWS_DEFAULT_REGION", "us-east-1")),
    )


# ------------------------------------------------------------------ #
# Config file loading
# ------------------------------------------------------------------ #


def load_schema(name: str) -> Dict[str, Any]:
    """
    Load a bundled JSON schema by file name.

    Raises:
        ConfigurationError: If the schema is missing or not valid JSON
    """
    schema_path = SCHEMA_DIR / name
    try:
        with open(schema_path, "r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError as e:
        raise ConfigurationError(f"Schema file not found: {schema_path}") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in {schema_path}: {e}") from e


def load_config_file(config_path: str) -> Dict[str, Any]:
    """
    Load a YAML or JSON configuration file and validate it against the schema.

    Args:
        config_path: Path to the configuration file

    Returns:
        Validated configuration dictionary (empty if the file is empty)

    Raises:
        ConfigurationError: If the file is missing, unparsable or fails validation
    """
    schema = load_schema("parity_config.schema.json")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            content = yaml.safe_load(f)
    except FileNotFoundError as e:
        logger.error(f"Configuration file not found: {config_path}")
        raise ConfigurationError(f"Configuration file not found: {config_path}") from e
    except yaml.YAMLError as e:
        logger.error(f"Invalid YAML in configuration: {e}")
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

    if not content:
        logger.warning(f"Empty configuration file: {config_path}")
        return {}

    try:
        jsonschema.validate(instance=content, schema=schema)
        logger.info("Configuration file validated against schema")
    except jsonschema.ValidationError as e:
        logger.error(f"Configuration failed schema validation: {e.message}")
        raise ConfigurationError(f"Configuration validation failed: {e.message}") from e
    except jsonschema.SchemaError as e:
        logger.error(f"Configuration schema is invalid: {e.message}")
        raise ConfigurationError(f"Configuration schema is invalid: {e.message}") from e

    return content


@dataclass
class EngineSettings:
    """All settings sections for one CLI invocation."""

    recorder: RecorderConfig
    comparison: ComparisonOptions
    spot_test: SpotTestConfig
    parity: ParityValidationConfig
    notifications: NotificationSettings


def load_settings(config_path: Optional[str] = None, quick: bool = False) -> EngineSettings:
    """
    Resolve settings from defaults, environment and an optional config file.

    File values take precedence over environment values.
    """
    settings = EngineSettings(
        recorder=create_default_recorder_config(),
        comparison=ComparisonOptions(),
        spot_test=load_spot_test_config_from_env(),
        parity=create_default_parity_config(quick=quick),
        notifications=create_default_notification_settings(),
    )

    if not config_path:
        return settings

    data = load_config_file(config_path)

    recorder_data = dict(data.get("recorder", {}))
    if "interpreter_args" in recorder_data:
        recorder_data["interpreter_args"] = tuple(recorder_data["interpreter_args"])
    settings.recorder = dataclasses.replace(settings.recorder, **recorder_data)

    settings.comparison = dataclasses.replace(settings.comparison, **data.get("comparison", {}))

    spot_data = dict(data.get("spot_test", {}))
    if "focus_areas" in spot_data:
        spot_data["focus_areas"] = parse_enum_list(spot_data["focus_areas"], GameArea)
    if "command_types" in spot_data:
        spot_data["command_types"] = parse_enum_list(spot_data["command_types"], CommandType)
    settings.spot_test = dataclasses.replace(settings.spot_test, **spot_data)

    settings.parity = dataclasses.replace(settings.parity, **data.get("parity", {}))
    settings.notifications = dataclasses.replace(
        settings.notifications, **data.get("notifications", {})
    )

    logger.info(f"Loaded configuration overrides from {config_path}")
    return settings


def create_sample_config(output_path: str) -> Path:
    """Write a sample configuration file in YAML."""
    sample = {
        "recorder": {
            "interpreter_path": DEFAULT_INTERPRETER_PATHS[0],
            "interpreter_args": list(DEFAULT_INTERPRETER_ARGS),
            "game_file_path": DEFAULT_GAME_FILE_PATH,
            "timeout_ms": DEFAULT_RECORDER_TIMEOUT_MS,
        },
        "comparison": ComparisonOptions().to_dict(),
        "spot_test": SpotTestConfig(seed=DEFAULT_SEED).to_dict(),
        "parity": {
            "seeds": list(QUICK_SEEDS),
            "commands_per_seed": QUICK_COMMANDS_PER_SEED,
            "timeout_ms": DEFAULT_PARITY_TIMEOUT_MS,
            "baseline_path": DEFAULT_BASELINE_PATH,
        },
        "notifications": {"slack_enabled": False, "metrics_enabled": False},
    }

    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(sample, sort_keys=False), encoding="utf-8")
    logger.info(f"Wrote sample configuration to {path}")
    return path


def load_engine_factory(reference: Optional[str]) -> Callable[[], Any]:
    """
    Resolve a ``module:callable`` reference to the engine factory.

    Raises:
        RecorderUnavailable: If no factory is configured or it cannot be imported
    """
    if not reference:
        raise RecorderUnavailable(
            "No model engine configured. Set PARITY_ENGINE_FACTORY or pass --engine module:callable"
        )

    module_name, sep, attr = reference.partition(":")
    if not sep or not module_name or not attr:
        raise RecorderUnavailable(f"Engine factory must look like 'module:callable', got {reference!r}")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise RecorderUnavailable(f"Cannot import engine module {module_name!r}: {e}") from e

    factory = getattr(module, attr, None)
    if factory is None or not callable(factory):
        raise RecorderUnavailable(f"Engine factory {reference!r} is not a callable")

    return factory
