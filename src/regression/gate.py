"""
Regression gate.

Compares a parity run against the stored baseline and maps the outcome
to CI-stable exit codes. Only logic differences that the baseline does
not already accept fail the gate.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path
from typing import List, Optional, Union

from src.analysis.difference_classifier import ClassifiedDifference, DifferenceClassification
from src.config.settings import DEFAULT_BASELINE_PATH
from src.recording.exceptions import RecorderTimeout
from src.regression.baseline import Baseline, BaselineDifference, BaselineStore, hash_difference
from src.regression.exceptions import NoBaseline
from src.validation.models import ParityRunResult

logger = logging.getLogger(__name__)

MAX_REPORTED_DIFFERENCES = 10
OUTPUT_PREVIEW_CHARS = 200
RULE = "=" * 60


class ExitCode(IntEnum):
    SUCCESS = 0
    REGRESSION = 1
    NO_BASELINE = 2
    EXECUTION_ERROR = 3
    TIMEOUT = 4


@dataclass
class RegressionResult:
    passed: bool
    summary: str
    new_logic_differences: List[ClassifiedDifference] = field(default_factory=list)
    resolved_logic_differences: List[BaselineDifference] = field(default_factory=list)
    current_differences: int = 0
    baseline_differences: int = 0
    error_message: Optional[str] = None

    @property
    def exit_code(self) -> ExitCode:
        return ExitCode.SUCCESS if self.passed else ExitCode.REGRESSION


def exit_code_for(error: BaseException) -> ExitCode:
    """Exit code for a failure that stopped the gate before a verdict."""
    if isinstance(error, NoBaseline):
        return ExitCode.NO_BASELINE
    if isinstance(error, RecorderTimeout):
        return ExitCode.TIMEOUT
    # MalformedBaseline, spawn/cleanup failures, unavailable recorders and anything else
    return ExitCode.EXECUTION_ERROR


def get_commit_hash(cwd: Optional[Union[str, Path]] = None) -> Optional[str]:
    """Current git HEAD, or None outside a repository."""
    try:
        completed = subprocess.run(
            ["git", "rev-parse", "HEAD"],
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=10,
            check=True,
        )
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug(f"Could not read git commit hash: {e}")
        return None
    return completed.stdout.strip() or None


def _preview(text: str) -> str:
    if len(text) <= OUTPUT_PREVIEW_CHARS:
        return text
    return text[:OUTPUT_PREVIEW_CHARS] + "..."


def format_regression_error(new_differences: List[ClassifiedDifference]) -> str:
    lines = [
        RULE,
        "PARITY REGRESSION DETECTED",
        RULE,
        "",
        f"Found {len(new_differences)} new logic difference(s) not in baseline:",
        "",
    ]

    for number, diff in enumerate(new_differences[:MAX_REPORTED_DIFFERENCES], start=1):
        lines.extend(
            [
                f"--- Difference {number} ---",
                f"Command: {diff.command}",
                f"Command Index: {diff.command_index}",
                f"Classification: {diff.classification.value}",
                f"Reason: {diff.reason}",
                "",
                "Model Output:",
                _preview(diff.model_output),
                "",
                "Reference Output:",
                _preview(diff.reference_output),
                "",
            ]
        )

    hidden = len(new_differences) - MAX_REPORTED_DIFFERENCES
    if hidden > 0:
        lines.extend([f"... and {hidden} more", ""])

    lines.extend(
        [
            RULE,
            "ACTION REQUIRED: Fix the logic differences or update the baseline",
            RULE,
        ]
    )
    return "\n".join(lines)


def generate_regression_summary(
    result: ParityRunResult,
    baseline: Baseline,
    new_differences: List[ClassifiedDifference],
    resolved: List[BaselineDifference],
    passed: bool,
) -> str:
    lines = [
        "Regression Detection Summary",
        "============================",
        "",
        f"Baseline established: {baseline.established_at}",
        f"Baseline commit: {baseline.commit_hash or 'N/A'}",
        "",
        "Baseline Statistics:",
        f"  - Total differences: {baseline.total_differences}",
        f"  - RNG differences: {baseline.rng_differences}",
        f"  - State divergences: {baseline.state_divergences}",
        f"  - Logic differences: {baseline.logic_differences}",
        "",
        "Current Run Statistics:",
        f"  - Total differences: {result.total_differences}",
        f"  - RNG differences: {result.rng_differences}",
        f"  - State divergences: {result.state_divergences}",
        f"  - Logic differences: {result.logic_differences}",
        f"  - Parity: {result.overall_parity_percentage:.2f}%",
        "",
        f"New logic differences: {len(new_differences)}",
        f"Resolved logic differences: {len(resolved)}",
        "",
        f"Status: {'PASSED' if passed else 'FAILED'}",
    ]
    return "\n".join(lines)


class RegressionGate:
    """Baseline establishment and regression detection for one baseline file."""

    def __init__(self, baseline_path: Union[str, Path] = DEFAULT_BASELINE_PATH) -> None:
        self.store = BaselineStore(baseline_path)

    @property
    def baseline_path(self) -> Path:
        return self.store.path

    def has_baseline(self) -> bool:
        return self.store.exists()

    def establish_baseline(
        self, result: ParityRunResult, commit_hash: Optional[str] = None
    ) -> Baseline:
        """Snapshot ``result`` as the accepted baseline, replacing any previous one."""
        if result.logic_differences > 0:
            logger.warning(
                f"Establishing baseline with {result.logic_differences} logic difference(s); "
                "they will be accepted as known differences"
            )
        baseline = Baseline.from_run(result, commit_hash)
        self.store.save(baseline)
        return baseline

    def detect_regressions(self, result: ParityRunResult) -> RegressionResult:
        """
        Compare ``result`` against the stored baseline.

        Raises:
            NoBaseline: If no baseline file exists
            MalformedBaseline: If the baseline is unreadable or invalid
        """
        baseline = self.store.load()
        known = baseline.logic_hashes()

        new_differences: List[ClassifiedDifference] = []
        current_hashes = set()
        for diff in result.differences:
            if diff.classification != DifferenceClassification.LOGIC_DIFFERENCE:
                continue
            digest = hash_difference(diff.command, diff.classification)
            current_hashes.add(digest)
            if digest not in known:
                new_differences.append(diff)

        resolved = [
            d for d in baseline.differences
            if d.classification == DifferenceClassification.LOGIC_DIFFERENCE
            and d.hash not in current_hashes
        ]

        passed = not new_differences
        summary = generate_regression_summary(result, baseline, new_differences, resolved, passed)

        if passed:
            logger.info(
                f"No regressions against baseline ({len(resolved)} logic difference(s) resolved)"
            )
        else:
            logger.error(f"{len(new_differences)} new logic difference(s) not in baseline")

        return RegressionResult(
            passed=passed,
            summary=summary,
            new_logic_differences=new_differences,
            resolved_logic_differences=resolved,
            current_differences=result.total_differences,
            baseline_differences=baseline.total_differences,
            error_message=None if passed else format_regression_error(new_differences),
        )
