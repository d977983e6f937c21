"""
Difference typing for spot-test analysis.

Turns comparator DiffEntry records into CommandDifference records with a
DifferenceType (keyword heuristics over the raw outputs) and an
IssueSeverity (type-weighted similarity buckets).
"""

from __future__ import annotations

from typing import Iterable, List, Optional

from src.analysis.models import CommandDifference, DifferenceType, IssueSeverity
from src.comparison.models import DiffEntry, DiffSeverity

PARSER_FAILURE_PHRASES = ("don't understand", "don't know")

OBJECT_KEYWORDS = (
    "take", "drop", "get", "put", "open", "close", "examine", "look at",
    "container", "object", "item", "carrying", "inventory",
)
TIMING_KEYWORDS = (
    "lamp", "lantern", "light", "candle", "flame", "burning", "dim",
    "thief", "troll", "cyclops", "moves", "daemon",
)
STATE_KEYWORDS = (
    "room", "location", "door", "passage", "exit", "entrance",
    "north", "south", "east", "west", "up", "down",
)

TYPE_WEIGHTS = {
    DifferenceType.STATE_DIVERGENCE: 0.8,
    DifferenceType.PARSER_DIFFERENCE: 0.85,
    DifferenceType.OBJECT_BEHAVIOR: 0.9,
    DifferenceType.TIMING_DIFFERENCE: 1.1,
    DifferenceType.MESSAGE_INCONSISTENCY: 1.05,
}

# (critical, high, medium) upper bounds on adjusted similarity
NORMAL_THRESHOLDS = (0.5, 0.7, 0.85)
STRICT_THRESHOLDS = (0.3, 0.6, 0.8)


def _contains_any(text: str, keywords: Iterable[str]) -> bool:
    lowered = text.lower()
    return any(keyword in lowered for keyword in keywords)


def classify_difference_type(model_output: str, reference_output: str) -> DifferenceType:
    """First matching rule wins."""
    if not model_output or not reference_output:
        return DifferenceType.STATE_DIVERGENCE

    if _contains_any(model_output, PARSER_FAILURE_PHRASES) != _contains_any(
        reference_output, PARSER_FAILURE_PHRASES
    ):
        return DifferenceType.PARSER_DIFFERENCE

    for keywords, difference_type in (
        (OBJECT_KEYWORDS, DifferenceType.OBJECT_BEHAVIOR),
        (TIMING_KEYWORDS, DifferenceType.TIMING_DIFFERENCE),
        (STATE_KEYWORDS, DifferenceType.STATE_DIVERGENCE),
    ):
        if _contains_any(model_output, keywords) or _contains_any(reference_output, keywords):
            return difference_type

    return DifferenceType.MESSAGE_INCONSISTENCY


class DifferenceDetector:
    """Assigns type and severity to comparator differences."""

    def __init__(self, strict: bool = False) -> None:
        self.strict = strict

    def assess_severity(
        self,
        similarity: float,
        difference_type: DifferenceType,
        comparator_severity: Optional[DiffSeverity] = None,
    ) -> IssueSeverity:
        if comparator_severity == DiffSeverity.CRITICAL:
            return IssueSeverity.CRITICAL

        adjusted = similarity * TYPE_WEIGHTS[difference_type]
        adjusted = min(max(adjusted, 0.0), 1.0)

        critical, high, medium = STRICT_THRESHOLDS if self.strict else NORMAL_THRESHOLDS
        if adjusted < critical:
            return IssueSeverity.CRITICAL
        if adjusted < high:
            return IssueSeverity.HIGH
        if adjusted < medium:
            return IssueSeverity.MEDIUM
        return IssueSeverity.LOW

    def detect(self, entry: DiffEntry) -> CommandDifference:
        model_output = entry.actual
        reference_output = entry.expected

        if not model_output or not reference_output:
            difference_type = DifferenceType.STATE_DIVERGENCE
            severity = IssueSeverity.CRITICAL
        else:
            difference_type = classify_difference_type(model_output, reference_output)
            severity = self.assess_severity(entry.similarity, difference_type, entry.severity)

        return CommandDifference(
            command_index=entry.index,
            command=entry.command,
            model_output=model_output,
            reference_output=reference_output,
            difference_type=difference_type,
            severity=severity,
            similarity=entry.similarity,
        )

    def detect_all(self, entries: Iterable[DiffEntry]) -> List[CommandDifference]:
        return [self.detect(entry) for entry in entries]
