"""
Transcript comparator.

Aligns two transcripts strictly by index, normalizes each pair of
outputs, scores them with edit-distance similarity and classifies the
severity of every mismatch.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from src.comparison.models import (
    ComparisonOptions,
    DiffEntry,
    DiffReport,
    DiffSeverity,
    DiffSummary,
)
from src.comparison.normalization import NormalizationPipeline, is_movement_command
from src.comparison.similarity import similarity
from src.recording.models import Transcript, TranscriptEntry

logger = logging.getLogger(__name__)

MISSING_ENTRY_CATEGORY = "transcript structure"
MINOR_SIMILARITY = 0.9
MAJOR_SIMILARITY = 0.7


def categorize_command(command: str) -> str:
    """Map a command to the area of game behavior it exercises."""
    cmd = command.strip().lower()
    verb = cmd.split()[0] if cmd else ""

    if cmd in ("look", "l"):
        return "room description"
    if cmd in ("inventory", "i"):
        return "inventory"
    if verb == "examine" or cmd.startswith("x "):
        return "object examination"
    if verb in ("take", "get", "drop", "put"):
        return "object manipulation"
    if is_movement_command(cmd):
        return "navigation"
    if verb in ("attack", "kill"):
        return "combat"
    if verb in ("open", "close"):
        return "container interaction"
    return "general"


class TranscriptComparator:
    """Compare a reference transcript (A) against a model transcript (B)."""

    def __init__(self, options: Optional[ComparisonOptions] = None) -> None:
        self.options = options or ComparisonOptions()
        self.pipeline = NormalizationPipeline(self.options)

    def compare(self, expected: Transcript, actual: Transcript) -> DiffReport:
        """
        Build a DiffReport for two transcripts.

        Args:
            expected: Transcript from the reference interpreter
            actual: Transcript from the model engine

        Returns:
            DiffReport with per-entry differences and the parity score
        """
        # Every aligned turn counts, including the initial output at index 0.
        total_commands = max(len(expected.entries), len(actual.entries))

        exact_matches = 0
        close_matches = 0
        differences: List[DiffEntry] = []

        for index in range(total_commands):
            entry_a = expected.entry_at(index)
            entry_b = actual.entry_at(index)

            if entry_a is None or entry_b is None:
                differences.append(self._missing_entry(index, entry_a, entry_b))
                continue

            outcome, diff = self.compare_entries(entry_a, entry_b)
            if outcome == "exact":
                exact_matches += 1
            elif outcome == "close":
                close_matches += 1
            if diff is not None:
                differences.append(diff)

        matches = exact_matches + close_matches
        parity_score = 100.0 if total_commands == 0 else 100.0 * matches / total_commands

        report = DiffReport(
            transcript_a_id=expected.id,
            transcript_b_id=actual.id,
            total_commands=total_commands,
            exact_matches=exact_matches,
            close_matches=close_matches,
            differences=differences,
            parity_score=parity_score,
            summary=DiffSummary.from_entries(differences),
        )

        logger.info(
            f"Compared {expected.id} vs {actual.id}: "
            f"{exact_matches} exact, {close_matches} close, {len(differences)} differences, "
            f"parity {parity_score:.2f}%"
        )
        return report

    def compare_entries(
        self, entry_a: TranscriptEntry, entry_b: TranscriptEntry
    ) -> Tuple[str, Optional[DiffEntry]]:
        """
        Compare one aligned pair.

        Returns:
            ``("exact" | "close" | "different", DiffEntry or None)``
        """
        command = entry_a.command or entry_b.command
        normalized_a = self.pipeline.normalize(entry_a.output, command)
        normalized_b = self.pipeline.normalize(entry_b.output, command)

        if normalized_a == normalized_b:
            return "exact", None

        score = similarity(normalized_a, normalized_b)
        severity = self.classify_severity(
            normalized_a, normalized_b, entry_a.output, entry_b.output, score
        )
        diff = DiffEntry(
            index=entry_a.index,
            command=command,
            expected=entry_a.output,
            actual=entry_b.output,
            similarity=score,
            severity=severity,
            category=categorize_command(command),
        )

        if score >= self.options.tolerance_threshold:
            if severity == DiffSeverity.FORMATTING:
                return "close", None
            return "close", diff

        return "different", diff

    def classify_severity(
        self,
        normalized_a: str,
        normalized_b: str,
        raw_a: str,
        raw_b: str,
        score: float,
    ) -> DiffSeverity:
        for variation in self.options.known_variations:
            if variation and (variation in raw_a or variation in raw_b):
                return DiffSeverity.MINOR

        if normalized_a == normalized_b:
            return DiffSeverity.FORMATTING
        if self.options.ignore_case_in_messages and normalized_a.lower() == normalized_b.lower():
            return DiffSeverity.FORMATTING

        if score >= MINOR_SIMILARITY:
            return DiffSeverity.MINOR
        if score >= MAJOR_SIMILARITY:
            return DiffSeverity.MAJOR
        return DiffSeverity.CRITICAL

    @staticmethod
    def _missing_entry(
        index: int,
        entry_a: Optional[TranscriptEntry],
        entry_b: Optional[TranscriptEntry],
    ) -> DiffEntry:
        present = entry_a or entry_b
        command = present.command if present is not None else ""
        return DiffEntry(
            index=index,
            command=command,
            expected=entry_a.output if entry_a is not None else "",
            actual=entry_b.output if entry_b is not None else "",
            similarity=0.0,
            severity=DiffSeverity.CRITICAL,
            category=MISSING_ENTRY_CATEGORY,
        )
