"""
Exhaustive Parity Validator

Entry point for multi-seed parity runs. Coordinates command generation,
concurrent recording on both implementations, difference classification,
per-seed report artifacts, CloudWatch metrics and Slack notifications.

The resulting ParityRunResult feeds the regression gate.
"""

import logging
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from src.analysis.difference_classifier import ClassifiedDifference, DifferenceClassifier
from src.comparison.comparator import TranscriptComparator
from src.comparison.diff_reporter import DiffReporter
from src.comparison.models import ComparisonOptions
from src.comparison.normalization import extract_action_response
from src.config.settings import ParityValidationConfig
from src.monitoring.parity_metrics import ParityMetricsPublisher
from src.notifications.slack_service import SlackWebhookClient
from src.recording.base import GameRecorder
from src.recording.concurrent import record_concurrently
from src.recording.exceptions import RecorderTimeout, RecorderUnavailable
from src.recording.models import RecordingOptions, Transcript
from src.spot_testing.command_generator import CommandGenerationConfig, RandomCommandGenerator
from src.validation.models import ParityRunResult, SeedResult

logger = logging.getLogger(__name__)

EXPLORATION_COMMANDS = (
    "look",
    "inventory",
    "n",
    "s",
    "e",
    "w",
    "u",
    "d",
    "examine me",
    "wait",
    "look around",
)
MISSING_OUTPUT = "<missing>"

MODEL = "model"
REFERENCE = "reference"


def pad_with_exploration(commands: List[str], target: int) -> List[str]:
    """Extend ``commands`` to ``target`` by cycling the exploration commands."""
    padded = list(commands)
    index = 0
    while len(padded) < target:
        padded.append(EXPLORATION_COMMANDS[index % len(EXPLORATION_COMMANDS)])
        index += 1
    return padded


def generate_run_summary(result: ParityRunResult) -> str:
    lines = [
        "Exhaustive Parity Validation Results",
        "====================================",
        f"Seeds tested: {len(result.seeds)}",
        f"Commands per seed: {result.commands_per_seed}",
        f"Total differences: {result.total_differences}",
        f"  - RNG differences: {result.rng_differences}",
        f"  - State divergences: {result.state_divergences}",
        f"  - Logic differences: {result.logic_differences}",
        f"Overall parity: {result.overall_parity_percentage:.2f}%",
        f"Status: {'PASSED' if result.passed else 'FAILED'}",
    ]
    if not result.passed:
        lines.extend(
            [
                "",
                f"WARNING: {result.logic_differences} logic difference(s) detected!",
                "These indicate behavioral differences that are not explained by randomness.",
            ]
        )
    return "\n".join(lines)


class ExhaustiveParityValidator:
    """
    Runs the same generated command sequence per seed on both implementations.

    Responsibilities:
    - Generate seeded commands, padded to the requested length
    - Record model and reference concurrently under the run deadline
    - Classify every mismatching response pair
    - Write per-seed comparison reports when a report directory is set
    - Publish metrics and notifications when configured
    """

    def __init__(
        self,
        config: ParityValidationConfig,
        model_recorder: GameRecorder,
        reference_recorder: GameRecorder,
        comparison_options: Optional[ComparisonOptions] = None,
        report_dir: Optional[Path] = None,
        metrics_publisher: Optional[ParityMetricsPublisher] = None,
        slack_client: Optional[SlackWebhookClient] = None,
    ):
        self.config = config
        self.model_recorder = model_recorder
        self.reference_recorder = reference_recorder
        self.comparator = TranscriptComparator(comparison_options)
        self.classifier = DifferenceClassifier()
        self.diff_reporter = DiffReporter(output_dir=report_dir) if report_dir else None
        self.metrics_publisher = metrics_publisher
        self.slack_client = slack_client
        self.seed_stats: List[Dict[str, Any]] = []

    def build_commands(self, seed: int) -> List[str]:
        generator = RandomCommandGenerator(seed)
        generated = generator.generate_commands(
            CommandGenerationConfig(command_count=self.config.commands_per_seed)
        )
        return pad_with_exploration([g.command for g in generated], self.config.commands_per_seed)

    def run(self, seeds: Optional[Sequence[int]] = None) -> ParityRunResult:
        """
        Validate every seed in order.

        Raises:
            RecorderUnavailable: If either implementation cannot be reached
            RecorderTimeout: If the run exceeds ``config.timeout_ms``
        """
        run_seeds = list(seeds if seeds is not None else self.config.seeds)
        if not self.reference_recorder.is_available():
            raise RecorderUnavailable(
                "Reference interpreter not available; parity validation needs both implementations"
            )
        if not self.model_recorder.is_available():
            raise RecorderUnavailable("Model engine not available")

        logger.info(
            f"Starting parity run: {len(run_seeds)} seed(s) x {self.config.commands_per_seed} commands"
        )
        if self.slack_client:
            self.slack_client.send_parity_run_started(run_seeds, self.config.commands_per_seed)

        started = time.monotonic()
        deadline = started + self.config.timeout_ms / 1000
        result = ParityRunResult(seeds=run_seeds, commands_per_seed=self.config.commands_per_seed)
        self.seed_stats = []

        for seed in run_seeds:
            remaining_ms = int((deadline - time.monotonic()) * 1000)
            if remaining_ms <= 0:
                raise RecorderTimeout(
                    f"Parity run exceeded {self.config.timeout_ms}ms before seed {seed}"
                )
            result.seed_results[seed] = self.run_seed(seed, remaining_ms)

        result.execution_time_ms = (time.monotonic() - started) * 1000

        if self.diff_reporter and self.seed_stats:
            self.diff_reporter.write_aggregate_summary(self.seed_stats)
        if self.metrics_publisher:
            self.metrics_publisher.publish_run(result)
        if self.slack_client:
            self.slack_client.send_parity_run_completed(result)

        logger.info(
            f"Parity run complete: {result.overall_parity_percentage:.2f}% parity, "
            f"{result.logic_differences} logic difference(s)"
        )
        return result

    def run_seed(self, seed: int, timeout_ms: int) -> SeedResult:
        started = time.monotonic()
        self.classifier.reset()
        commands = self.build_commands(seed)

        outcome = record_concurrently(
            {MODEL: self.model_recorder, REFERENCE: self.reference_recorder},
            commands,
            RecordingOptions(seed=seed),
            timeout_ms,
        )
        model = outcome.raise_for(MODEL)
        reference = outcome.raise_for(REFERENCE)

        matching, differences = self.compare_and_classify(model, reference, commands)

        if self.diff_reporter:
            label = f"seed-{seed}"
            report = self.comparator.compare(reference, model)
            self.diff_reporter.write_reports(label, f"{len(commands)} generated commands", report)
            self.seed_stats.append(DiffReporter.build_stats(label, report))

        seed_result = SeedResult(
            seed=seed,
            total_commands=len(commands),
            matching_responses=matching,
            differences=differences,
            execution_time_ms=(time.monotonic() - started) * 1000,
            model_transcript_id=model.id,
            reference_transcript_id=reference.id,
        )
        logger.info(
            f"Seed {seed}: {matching}/{len(commands)} matching, "
            f"{len(differences)} difference(s) ({seed_result.parity_percentage:.2f}%)"
        )
        return seed_result

    def compare_and_classify(
        self, model: Transcript, reference: Transcript, commands: Sequence[str]
    ):
        """
        Compare the action response of every command.

        The initial output (index 0) is not scored. A command missing on
        either side is classified against a ``<missing>`` placeholder.
        """
        matching = 0
        differences: List[ClassifiedDifference] = []

        for index, command in enumerate(commands, start=1):
            model_entry = model.entry_at(index)
            reference_entry = reference.entry_at(index)

            if model_entry is None or reference_entry is None:
                differences.append(
                    self.classifier.classify(
                        model_entry.output if model_entry else MISSING_OUTPUT,
                        reference_entry.output if reference_entry else MISSING_OUTPUT,
                        command,
                        index,
                    )
                )
                continue

            model_response = extract_action_response(model_entry.output, command).response
            reference_response = extract_action_response(reference_entry.output, command).response

            if model_response == reference_response:
                matching += 1
            else:
                differences.append(
                    self.classifier.classify(model_response, reference_response, command, index)
                )

        return matching, differences
