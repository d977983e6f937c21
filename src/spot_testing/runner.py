"""
Spot-test runner.

Generates a seeded batch of commands, records them on the model engine
and the reference interpreter concurrently, compares the transcripts and
analyzes the differences. Without a usable reference interpreter the run
degrades to a model-only smoke test.
"""

from __future__ import annotations

import logging
import time
from typing import List, Optional, Tuple

from src.analysis.difference_detector import DifferenceDetector
from src.analysis.issue_analyzer import IssueAnalyzer, calculate_parity_percentage
from src.analysis.models import CommandDifference
from src.comparison.comparator import TranscriptComparator
from src.comparison.models import ComparisonOptions, DiffReport
from src.config.settings import MAX_SEED, SpotTestConfig
from src.recording.base import GameRecorder
from src.recording.concurrent import record_concurrently
from src.recording.exceptions import RecorderUnavailable
from src.recording.model_recorder import ModelRecorder
from src.recording.models import RecordingOptions, Transcript
from src.spot_testing.command_generator import CommandGenerationConfig, RandomCommandGenerator
from src.spot_testing.models import GameContext, SpotTestResult

logger = logging.getLogger(__name__)

MODEL = "model"
REFERENCE = "reference"


def generate_run_seed() -> int:
    return int(time.time() * 1000) % MAX_SEED


class SpotTestRunner:
    """Runs one spot test end to end."""

    def __init__(
        self,
        config: SpotTestConfig,
        model_recorder: ModelRecorder,
        reference_recorder: Optional[GameRecorder] = None,
        comparison_options: Optional[ComparisonOptions] = None,
        analyzer: Optional[IssueAnalyzer] = None,
    ) -> None:
        self.config = config
        self.model_recorder = model_recorder
        self.reference_recorder = reference_recorder
        self.comparator = TranscriptComparator(comparison_options)
        self.detector = DifferenceDetector(strict=config.strict_validation)
        self.analyzer = analyzer or IssueAnalyzer()
        self.last_report: Optional[DiffReport] = None

    def resolve_seed(self) -> int:
        if self.config.seed is not None:
            return self.config.seed
        seed = generate_run_seed()
        logger.info(f"No seed configured; using generated seed {seed}")
        return seed

    def describe_context(self, seed: int) -> GameContext:
        """Starting context from the engine, or the default opening position."""
        engine = self.model_recorder.create_engine(seed)
        return engine.describe_context() or GameContext()

    def generate_commands(self, seed: int) -> List[str]:
        generator = RandomCommandGenerator(seed)
        generated = generator.generate_commands(
            CommandGenerationConfig(
                command_count=self.config.command_count,
                command_types=list(self.config.command_types),
                focus_areas=list(self.config.focus_areas),
                avoid_game_ending=self.config.avoid_game_ending,
            ),
            self.describe_context(seed),
        )
        return [g.command for g in generated]

    def reference_is_usable(self) -> bool:
        return self.reference_recorder is not None and self.reference_recorder.is_available()

    def run(self) -> SpotTestResult:
        """
        Execute the spot test.

        Raises:
            RecorderUnavailable: If the model engine cannot be created
            RecorderTimeout: If recording exceeds the configured timeout
        """
        started = time.monotonic()
        seed = self.resolve_seed()
        commands = self.generate_commands(seed)
        logger.info(f"Spot test seed {seed}: {len(commands)} commands ({self.config.summary()})")

        warnings: List[str] = []
        options = RecordingOptions(seed=seed)

        recorders = {MODEL: self.model_recorder}
        if self.reference_is_usable():
            recorders[REFERENCE] = self.reference_recorder
        else:
            warnings.append(
                "Reference interpreter not available; running model-only without parity comparison"
            )
            logger.warning(warnings[-1])

        outcome = record_concurrently(recorders, commands, options, self.config.timeout_ms)
        model_transcript = outcome.raise_for(MODEL)

        reference_transcript: Optional[Transcript] = None
        if REFERENCE in recorders:
            try:
                reference_transcript = outcome.raise_for(REFERENCE)
            except RecorderUnavailable as e:
                warnings.append(f"Reference interpreter unavailable: {e}")
                logger.warning(warnings[-1])

        differences, report = self.compare(reference_transcript, model_transcript)
        analysis = self.analyzer.analyze(differences)
        records = self.analyzer.recommendation_engine.generate(differences, analysis.patterns)

        transcript_ids = {MODEL: model_transcript.id}
        if reference_transcript is not None:
            transcript_ids[REFERENCE] = reference_transcript.id

        result = SpotTestResult(
            seed=seed,
            total_commands=len(commands),
            commands=commands,
            differences=differences,
            parity_score=calculate_parity_percentage(len(commands), len(differences)),
            execution_time_ms=(time.monotonic() - started) * 1000,
            analysis=analysis,
            recommendations=records,
            reference_available=reference_transcript is not None,
            transcript_ids=transcript_ids,
            warnings=warnings,
        )

        logger.info(
            f"Spot test complete: {len(differences)}/{len(commands)} differences, "
            f"parity {result.parity_score:.2f}%, severity {analysis.overall_severity.value}"
        )
        return result

    def compare(
        self, reference: Optional[Transcript], model: Transcript
    ) -> Tuple[List[CommandDifference], Optional[DiffReport]]:
        """Typed differences for every answered command (the initial output is not scored)."""
        if reference is None:
            self.last_report = None
            return [], None

        report = self.comparator.compare(reference, model)
        self.last_report = report
        differences = [
            self.detector.detect(entry) for entry in report.differences if entry.index > 0
        ]
        return differences, report
