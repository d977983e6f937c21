"""Prioritized follow-up recommendations for spot-test findings."""

from __future__ import annotations

from typing import List, Optional, Sequence

from src.analysis.models import (
    CommandDifference,
    DifferenceType,
    IssuePattern,
    IssueSeverity,
    Recommendation,
    RecommendationThresholds,
)

PRIORITY_ORDER = {
    IssueSeverity.CRITICAL: 0,
    IssueSeverity.HIGH: 1,
    IssueSeverity.MEDIUM: 2,
    IssueSeverity.LOW: 3,
}

NO_DIFFERENCES_ACTION = "No differences detected - parity appears good for tested commands"
URGENT_ACTION = "URGENT: Critical issues detected - immediate investigation required"
COMPREHENSIVE_ACTION = "Run comprehensive parity tests to investigate all differences thoroughly"
FALLBACK_ACTION = (
    "Review the sample differences and consider targeted testing of affected areas"
)

PATTERN_ACTIONS = {
    DifferenceType.STATE_DIVERGENCE: (
        "state management",
        "Investigate game state management - this could indicate serious parity issues",
        "Room, door or exit state differs between implementations",
        "1-2 days",
    ),
    DifferenceType.PARSER_DIFFERENCE: (
        "parser",
        "Review command parsing logic and vocabulary handling",
        "One implementation rejects commands the other accepts",
        "half day",
    ),
    DifferenceType.OBJECT_BEHAVIOR: (
        "objects",
        "Check object interaction and behavior implementation",
        "Taking, dropping or opening objects produces different results",
        "half day",
    ),
    DifferenceType.TIMING_DIFFERENCE: (
        "timing",
        "Review daemon and timer scheduling for light sources and wandering actors",
        "Lamp, candle or actor messages appear on different turns",
        "1 day",
    ),
    DifferenceType.MESSAGE_INCONSISTENCY: (
        "messages",
        "Review message formatting and content generation logic",
        "The same action produces differently worded responses",
        "1-2 hours",
    ),
}


class RecommendationEngine:
    """Builds recommendation records from differences and patterns."""

    def __init__(self, thresholds: Optional[RecommendationThresholds] = None) -> None:
        self.thresholds = thresholds or RecommendationThresholds()

    def generate(
        self,
        differences: Sequence[CommandDifference],
        patterns: Sequence[IssuePattern],
    ) -> List[Recommendation]:
        """
        Produce recommendations sorted critical first.

        The sort is stable, so records of equal priority keep the order in
        which they were produced.
        """
        if not differences:
            return [
                Recommendation(
                    priority=IssueSeverity.LOW,
                    category="general",
                    action=NO_DIFFERENCES_ACTION,
                    reasoning="Every sampled command matched the reference output",
                    estimated_effort="none",
                )
            ]

        recommendations: List[Recommendation] = []

        critical_patterns = [p for p in patterns if p.severity == IssueSeverity.CRITICAL]
        if critical_patterns:
            names = ", ".join(p.type.value for p in critical_patterns)
            recommendations.append(
                Recommendation(
                    priority=IssueSeverity.CRITICAL,
                    category="triage",
                    action=URGENT_ACTION,
                    reasoning=f"Critical patterns: {names}",
                    estimated_effort="immediate",
                )
            )

        for pattern in patterns:
            category, action, reasoning, effort = PATTERN_ACTIONS[pattern.type]
            recommendations.append(
                Recommendation(
                    priority=pattern.severity,
                    category=category,
                    action=action,
                    reasoning=f"{reasoning} ({pattern.frequency} cases)",
                    estimated_effort=effort,
                )
            )

        if len(differences) >= self.thresholds.min_differences_for_deep_analysis:
            recommendations.append(
                Recommendation(
                    priority=IssueSeverity.MEDIUM,
                    category="coverage",
                    action=COMPREHENSIVE_ACTION,
                    reasoning=f"{len(differences)} differences found in a small sample",
                    estimated_effort="1-2 hours",
                )
            )

        if not recommendations:
            recommendations.append(
                Recommendation(
                    priority=IssueSeverity.LOW,
                    category="general",
                    action=FALLBACK_ACTION,
                    reasoning="Isolated differences without a recurring pattern",
                    estimated_effort="1-2 hours",
                )
            )

        return sorted(recommendations, key=lambda r: PRIORITY_ORDER[r.priority])
