"""Comparison data model: options, per-entry differences and the diff report."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List

DEFAULT_KNOWN_VARIATIONS = ["combat outcome", "thief movement", "random encounter"]
DEFAULT_TOLERANCE_THRESHOLD = 0.95


class DiffSeverity(Enum):
    """Severity of a single transcript difference."""

    FORMATTING = "formatting"
    MINOR = "minor"
    MAJOR = "major"
    CRITICAL = "critical"


@dataclass
class ComparisonOptions:
    """Knobs for the normalization pipeline and severity classification."""

    normalize_whitespace: bool = True
    ignore_case_in_messages: bool = False
    known_variations: List[str] = field(
        default_factory=lambda: list(DEFAULT_KNOWN_VARIATIONS)
    )
    tolerance_threshold: float = DEFAULT_TOLERANCE_THRESHOLD
    strip_status_bar: bool = True
    normalize_line_wrapping: bool = True
    strip_game_header: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def validate(self) -> List[str]:
        """Validate option ranges. Returns list of errors."""
        errors: List[str] = []
        if not 0.0 <= self.tolerance_threshold <= 1.0:
            errors.append("tolerance_threshold must be between 0 and 1")
        if any(not isinstance(v, str) or not v for v in self.known_variations):
            errors.append("known_variations must be non-empty strings")
        return errors


@dataclass(frozen=True)
class DiffEntry:
    """
    One compared index where the two transcripts disagree.

    ``expected`` is the reference interpreter's raw output and ``actual``
    the model engine's; an empty side marks a missing entry.
    """

    index: int
    command: str
    expected: str
    actual: str
    similarity: float
    severity: DiffSeverity
    category: str

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["severity"] = self.severity.value
        data["similarity"] = round(self.similarity, 4)
        return data


@dataclass
class DiffSummary:
    """Counts of differences by severity."""

    formatting: int = 0
    minor: int = 0
    major: int = 0
    critical: int = 0

    @classmethod
    def from_entries(cls, entries: List[DiffEntry]) -> "DiffSummary":
        summary = cls()
        for entry in entries:
            name = entry.severity.value
            setattr(summary, name, getattr(summary, name) + 1)
        return summary

    @property
    def total(self) -> int:
        return self.formatting + self.minor + self.major + self.critical

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass
class DiffReport:
    """Result of comparing two transcripts."""

    transcript_a_id: str
    transcript_b_id: str
    total_commands: int
    exact_matches: int
    close_matches: int
    differences: List[DiffEntry]
    parity_score: float
    summary: DiffSummary

    @property
    def passed(self) -> bool:
        return not self.differences

    def to_dict(self) -> Dict[str, Any]:
        return {
            "transcriptA": self.transcript_a_id,
            "transcriptB": self.transcript_b_id,
            "totalCommands": self.total_commands,
            "exactMatches": self.exact_matches,
            "closeMatches": self.close_matches,
            "parityScore": round(self.parity_score, 2),
            "summary": self.summary.to_dict(),
            "differences": [entry.to_dict() for entry in self.differences],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)
