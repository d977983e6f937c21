#!/usr/bin/env python3
"""
Spot-test parity between the model engine and the reference interpreter.

Runs one seeded batch of generated commands on both implementations and
reports parity, issue patterns and recommended follow-ups. Without a
reference interpreter the run is a model-only smoke test.

Exit codes:
  0  parity at or above the threshold
  1  parity below the threshold
  3  execution error
  4  timeout

Usage:
  spot-test-parity [--quick|--standard|--thorough|--ci] [--commands N] [--seed N]
                   [--timeout MS] [--threshold P] [--focus a,b] [--types a,b]
                   [--strict] [--allow-death] [--output text|json|markdown|csv]
                   [--report-dir DIR] [--config FILE] [--engine module:callable] [--verbose]
"""

import argparse
import dataclasses
import logging
import sys
from typing import List, Optional

from src.config.settings import (
    ConfigurationError,
    EngineSettings,
    SpotTestConfig,
    apply_mode,
    load_engine_factory,
    load_settings,
)
from src.monitoring.parity_metrics import ParityMetricsPublisher
from src.recording.exceptions import RecorderError
from src.recording.model_recorder import ModelRecorder
from src.recording.reference_recorder import ReferenceRecorder
from src.regression.gate import ExitCode, exit_code_for
from src.spot_testing.models import CommandType, GameArea, parse_enum_list
from src.spot_testing.reporting import OUTPUT_FORMATS, SpotTestReporter
from src.spot_testing.runner import SpotTestRunner

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the spot-test CLI."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _split(raw: str) -> List[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="spot-test-parity",
        description="Run a quick randomized parity spot test",
    )
    modes = parser.add_mutually_exclusive_group()
    modes.add_argument("--quick", dest="mode", action="store_const", const="quick",
                       help="25 commands, 15s timeout")
    modes.add_argument("--standard", dest="mode", action="store_const", const="standard",
                       help="50 commands, 30s timeout")
    modes.add_argument("--thorough", dest="mode", action="store_const", const="thorough",
                       help="200 commands, 60s timeout, strict")
    modes.add_argument("--ci", dest="mode", action="store_const", const="ci",
                       help="100 commands, 45s timeout, strict, 98%% threshold")

    parser.add_argument("--commands", type=int, help="Number of commands to generate")
    parser.add_argument("--seed", type=int, help="Seed for a reproducible run")
    parser.add_argument("--timeout", type=int, help="Run timeout in milliseconds")
    parser.add_argument("--threshold", type=float, help="Pass threshold in percent")
    parser.add_argument(
        "--focus", help="Comma-separated game areas: " + ", ".join(a.value for a in GameArea)
    )
    parser.add_argument(
        "--types", help="Comma-separated command types: " + ", ".join(t.value for t in CommandType)
    )
    parser.add_argument("--strict", action="store_true", help="Strict severity thresholds")
    parser.add_argument(
        "--allow-death", action="store_true", help="Allow game-ending commands"
    )
    parser.add_argument("--output", choices=OUTPUT_FORMATS, default="text", help="Report format")
    parser.add_argument("--report-dir", help="Also write the report to this directory")
    parser.add_argument("--engine", help="Model engine factory as module:callable")
    parser.add_argument("--config", help="YAML or JSON configuration file")
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    return parser


def resolve_config(settings: EngineSettings, args: argparse.Namespace) -> SpotTestConfig:
    """
    Apply the mode preset, then explicit flags, on top of file/environment settings.

    Raises:
        ConfigurationError: If a flag value is invalid
    """
    config = settings.spot_test
    if args.mode:
        config = apply_mode(config, args.mode)

    updates = {}
    if args.commands is not None:
        updates["command_count"] = args.commands
    if args.seed is not None:
        updates["seed"] = args.seed
    if args.timeout is not None:
        updates["timeout_ms"] = args.timeout
    if args.threshold is not None:
        updates["pass_threshold"] = args.threshold
    if args.strict:
        updates["strict_validation"] = True
    if args.allow_death:
        updates["avoid_game_ending"] = False
    if args.verbose:
        updates["verbose"] = True

    try:
        if args.focus:
            updates["focus_areas"] = parse_enum_list(_split(args.focus), GameArea)
        if args.types:
            updates["command_types"] = parse_enum_list(_split(args.types), CommandType)
    except ValueError as e:
        raise ConfigurationError(f"Invalid --focus/--types value: {e}") from e

    config = dataclasses.replace(config, **updates)
    errors = config.validate()
    if errors:
        raise ConfigurationError("Invalid spot-test configuration: " + "; ".join(errors))
    return config


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(verbose=args.verbose)

    try:
        settings = load_settings(args.config)
        config = resolve_config(settings, args)
        logger.info(f"Spot test configuration: {config.summary()}")

        factory = load_engine_factory(args.engine or settings.parity.engine_factory)
        runner = SpotTestRunner(
            config,
            ModelRecorder(factory),
            ReferenceRecorder(settings.recorder),
            comparison_options=settings.comparison,
        )
        result = runner.run()

        reporter = SpotTestReporter(threshold=config.pass_threshold)
        print(reporter.render(result, args.output))
        if args.report_dir:
            reporter.write_report(result, args.report_dir, args.output)

    except (RecorderError, ConfigurationError) as e:
        logger.error(f"Spot test failed ({type(e).__name__}): {e}")
        return exit_code_for(e)
    except Exception as e:
        logger.exception(f"Unexpected error during spot test: {e}")
        return ExitCode.EXECUTION_ERROR

    if settings.notifications.metrics_enabled:
        ParityMetricsPublisher(region_name=settings.notifications.metrics_region).publish_spot_test(
            result
        )

    if result.passed(config.pass_threshold):
        return ExitCode.SUCCESS
    logger.warning(
        f"Parity {result.parity_score:.2f}% is below the {config.pass_threshold}% threshold"
    )
    return ExitCode.REGRESSION


if __name__ == "__main__":
    sys.exit(main())
