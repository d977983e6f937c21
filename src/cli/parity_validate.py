#!/usr/bin/env python3
"""
Multi-seed parity validation with the CI regression gate.

Records the model engine and the reference interpreter on every seed,
classifies the differences and either establishes the baseline or checks
the run against it.

Exit codes:
  0  success (baseline established, or no new logic differences)
  1  regression detected
  2  no baseline found
  3  execution error
  4  timeout

Usage:
  parity-validate [--establish-baseline] [--quick] [--seeds 1,2,3] [--commands N]
                  [--baseline-path PATH] [--timeout MS] [--engine module:callable]
                  [--config FILE] [--verbose]
"""

import argparse
import dataclasses
import logging
import sys
from pathlib import Path
from typing import List, Optional

from src.config.settings import (
    ConfigurationError,
    EngineSettings,
    load_engine_factory,
    load_settings,
    parse_seed_list,
)
from src.monitoring.parity_metrics import ParityMetricsPublisher
from src.notifications.slack_service import SlackWebhookClient
from src.recording.exceptions import RecorderError
from src.recording.model_recorder import ModelRecorder
from src.recording.reference_recorder import ReferenceRecorder
from src.regression.exceptions import NoBaseline, RegressionGateError
from src.regression.gate import ExitCode, RegressionGate, exit_code_for, get_commit_hash
from src.validation.models import ParityRunResult
from src.validation.parity_validator import ExhaustiveParityValidator, generate_run_summary

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the parity CLI."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="parity-validate",
        description="Run multi-seed parity validation and the regression gate",
    )
    parser.add_argument(
        "-e",
        "--establish-baseline",
        action="store_true",
        help="Record this run as the accepted baseline instead of checking against it",
    )
    parser.add_argument(
        "-q",
        "--quick",
        action="store_true",
        help="Quick mode: 5 seeds x 100 commands",
    )
    parser.add_argument("--seeds", help="Comma-separated seeds (overrides mode)")
    parser.add_argument("--commands", type=int, help="Commands per seed")
    parser.add_argument("--baseline-path", help="Baseline file location")
    parser.add_argument("--timeout", type=int, help="Whole-run timeout in milliseconds")
    parser.add_argument("--engine", help="Model engine factory as module:callable")
    parser.add_argument("--report-dir", help="Write per-seed comparison reports here")
    parser.add_argument("--config", help="YAML or JSON configuration file")
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    return parser


def apply_cli_overrides(settings: EngineSettings, args: argparse.Namespace) -> EngineSettings:
    """
    Overlay explicit flags on file/environment settings.

    Raises:
        ConfigurationError: If a flag value is invalid
    """
    updates = {}
    if args.seeds:
        updates["seeds"] = parse_seed_list(args.seeds)
    if args.commands is not None:
        updates["commands_per_seed"] = args.commands
    if args.baseline_path:
        updates["baseline_path"] = args.baseline_path
    if args.timeout is not None:
        updates["timeout_ms"] = args.timeout
    if args.engine:
        updates["engine_factory"] = args.engine

    settings.parity = dataclasses.replace(settings.parity, **updates)

    errors = settings.parity.validate()
    if errors:
        raise ConfigurationError("Invalid parity configuration: " + "; ".join(errors))
    return settings


def build_validator(
    settings: EngineSettings, report_dir: Optional[str] = None
) -> ExhaustiveParityValidator:
    factory = load_engine_factory(settings.parity.engine_factory)
    slack_client = None
    if settings.notifications.slack_enabled:
        slack_client = SlackWebhookClient(webhook_url=settings.notifications.slack_webhook_url)

    return ExhaustiveParityValidator(
        config=settings.parity,
        model_recorder=ModelRecorder(factory),
        reference_recorder=ReferenceRecorder(settings.recorder),
        comparison_options=settings.comparison,
        report_dir=Path(report_dir) if report_dir else None,
        slack_client=slack_client,
    )


def publish_metrics(
    settings: EngineSettings, result: ParityRunResult, regression_detected: Optional[bool]
) -> None:
    if not settings.notifications.metrics_enabled:
        return
    publisher = ParityMetricsPublisher(region_name=settings.notifications.metrics_region)
    publisher.publish_run(result, regression_detected=regression_detected)


def establish(gate: RegressionGate, result: ParityRunResult) -> int:
    baseline = gate.establish_baseline(result, get_commit_hash())
    print(f"Baseline established at {gate.baseline_path}")
    print(f"  Commit: {baseline.commit_hash or 'N/A'}")
    print(f"  Total differences: {baseline.total_differences}")
    print(f"  Logic differences: {baseline.logic_differences}")
    return ExitCode.SUCCESS


def check(
    gate: RegressionGate,
    result: ParityRunResult,
    settings: EngineSettings,
    slack_client: Optional[SlackWebhookClient],
) -> int:
    regression = gate.detect_regressions(result)
    print(regression.summary)
    if not regression.passed:
        print()
        print(regression.error_message)
        if slack_client:
            slack_client.send_regression_alert(
                regression.new_logic_differences,
                resolved_count=len(regression.resolved_logic_differences),
                commit_hash=get_commit_hash(),
            )
    publish_metrics(settings, result, regression_detected=not regression.passed)
    return regression.exit_code


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(verbose=args.verbose)

    try:
        settings = apply_cli_overrides(load_settings(args.config, quick=args.quick), args)
        gate = RegressionGate(settings.parity.baseline_path)

        if not args.establish_baseline and not gate.has_baseline():
            raise NoBaseline(f"No baseline found at {gate.baseline_path}")

        validator = build_validator(settings, args.report_dir)
        result = validator.run()
        print(generate_run_summary(result))
        print()

        if args.establish_baseline:
            publish_metrics(settings, result, regression_detected=None)
            return establish(gate, result)
        return check(gate, result, settings, validator.slack_client)

    except NoBaseline as e:
        logger.error(str(e))
        print(f"{e}. Run with --establish-baseline to create one.")
        return ExitCode.NO_BASELINE
    except (RecorderError, RegressionGateError, ConfigurationError) as e:
        code = exit_code_for(e)
        logger.error(f"Parity validation failed ({type(e).__name__}): {e}")
        return code
    except Exception as e:
        logger.exception(f"Unexpected error during parity validation: {e}")
        return ExitCode.EXECUTION_ERROR


if __name__ == "__main__":
    sys.exit(main())
