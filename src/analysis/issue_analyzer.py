"""
Issue analyzer.

Aggregates typed command differences into recurring patterns, rates the
overall severity of a spot test and decides whether a deeper parity run
is warranted.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Dict, List, Optional, Sequence

from src.analysis.models import (
    PATTERN_TYPE_BY_DIFFERENCE,
    CommandDifference,
    DifferenceType,
    IssueAnalysis,
    IssuePattern,
    IssueSeverity,
    RecommendationThresholds,
)
from src.analysis.recommendations import RecommendationEngine
from src.analysis.severity import max_issue_severity

logger = logging.getLogger(__name__)

MIN_PATTERN_FREQUENCY = 2
MAX_SAMPLE_COMMANDS = 3

PATTERN_DESCRIPTIONS = {
    DifferenceType.MESSAGE_INCONSISTENCY: "Inconsistent messages between implementations",
    DifferenceType.STATE_DIVERGENCE: "Game state differences detected",
    DifferenceType.PARSER_DIFFERENCE: "Command parsing differences",
    DifferenceType.OBJECT_BEHAVIOR: "Object behavior inconsistencies",
    DifferenceType.TIMING_DIFFERENCE: "Timing-related differences",
}


def calculate_parity_percentage(total_commands: int, difference_count: int) -> float:
    """Share of commands without a difference, rounded to 2 decimals."""
    if total_commands <= 0:
        return 100.0
    matching = max(total_commands - difference_count, 0)
    return round(matching / total_commands * 100, 2)


def neutral_analysis() -> IssueAnalysis:
    return IssueAnalysis(
        patterns=[],
        overall_severity=IssueSeverity.LOW,
        recommend_deep_analysis=False,
        recommendations=[],
    )


class IssueAnalyzer:
    """Detects issue patterns and assesses overall severity."""

    def __init__(
        self,
        thresholds: Optional[RecommendationThresholds] = None,
        recommendation_engine: Optional[RecommendationEngine] = None,
    ) -> None:
        self.thresholds = thresholds or RecommendationThresholds()
        self.recommendation_engine = recommendation_engine or RecommendationEngine(
            self.thresholds
        )

    def analyze(self, differences: Sequence[CommandDifference]) -> IssueAnalysis:
        """
        Analyze differences into an IssueAnalysis.

        Never raises: malformed input is logged and yields a neutral
        analysis (no patterns, low severity).
        """
        try:
            return self._analyze(list(differences or []))
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            logger.error(f"Issue analysis failed on malformed input: {e}")
            return neutral_analysis()

    def _analyze(self, differences: List[CommandDifference]) -> IssueAnalysis:
        patterns = self.detect_patterns(differences)

        overall = max_issue_severity((p.severity for p in patterns), default=None)
        if overall is None:
            overall = max_issue_severity(
                (d.severity for d in differences), default=IssueSeverity.LOW
            )

        records = self.recommendation_engine.generate(differences, patterns)

        counts: Dict[str, int] = {}
        for diff in differences:
            counts[diff.difference_type.value] = counts.get(diff.difference_type.value, 0) + 1

        return IssueAnalysis(
            patterns=patterns,
            overall_severity=overall,
            recommend_deep_analysis=self.should_recommend_deep_analysis(differences, patterns),
            recommendations=[record.action for record in records],
            total_differences=len(differences),
            difference_counts=counts,
        )

    def detect_patterns(self, differences: Sequence[CommandDifference]) -> List[IssuePattern]:
        groups: "OrderedDict[DifferenceType, List[CommandDifference]]" = OrderedDict()
        for diff in differences:
            groups.setdefault(diff.difference_type, []).append(diff)

        patterns: List[IssuePattern] = []
        for difference_type, members in groups.items():
            if len(members) < MIN_PATTERN_FREQUENCY:
                continue
            patterns.append(
                IssuePattern(
                    type=difference_type,
                    pattern_type=PATTERN_TYPE_BY_DIFFERENCE[difference_type],
                    frequency=len(members),
                    severity=max_issue_severity(m.severity for m in members),
                    description=(
                        f"{PATTERN_DESCRIPTIONS[difference_type]} ({len(members)} cases)"
                    ),
                    sample_commands=[m.command for m in members[:MAX_SAMPLE_COMMANDS]],
                )
            )
        return patterns

    def should_recommend_deep_analysis(
        self,
        differences: Sequence[CommandDifference],
        patterns: Sequence[IssuePattern],
    ) -> bool:
        if any(p.severity == IssueSeverity.CRITICAL for p in patterns):
            return True
        if len(differences) >= self.thresholds.min_differences_for_deep_analysis:
            return True

        distinct_types = {d.difference_type for d in differences}
        if len(distinct_types) >= self.thresholds.min_distinct_types_for_deep_analysis:
            return True

        critical = sum(1 for d in differences if d.severity == IssueSeverity.CRITICAL)
        return critical >= self.thresholds.critical_issue_threshold
