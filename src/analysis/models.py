"""Issue analysis data model."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class DifferenceType(Enum):
    """What kind of behavior a difference points at."""

    MESSAGE_INCONSISTENCY = "message_inconsistency"
    STATE_DIVERGENCE = "state_divergence"
    PARSER_DIFFERENCE = "parser_difference"
    OBJECT_BEHAVIOR = "object_behavior"
    TIMING_DIFFERENCE = "timing_difference"


class IssueSeverity(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class PatternType(Enum):
    """Recurring-pattern labels, one per difference type."""

    CONSISTENT_MESSAGE_DIFFERENCE = "consistent_message_difference"
    STATE_TRACKING_ISSUE = "state_tracking_issue"
    PARSER_VOCABULARY_GAP = "parser_vocabulary_gap"
    OBJECT_INTERACTION_BUG = "object_interaction_bug"
    DAEMON_TIMING_DRIFT = "daemon_timing_drift"


PATTERN_TYPE_BY_DIFFERENCE = {
    DifferenceType.MESSAGE_INCONSISTENCY: PatternType.CONSISTENT_MESSAGE_DIFFERENCE,
    DifferenceType.STATE_DIVERGENCE: PatternType.STATE_TRACKING_ISSUE,
    DifferenceType.PARSER_DIFFERENCE: PatternType.PARSER_VOCABULARY_GAP,
    DifferenceType.OBJECT_BEHAVIOR: PatternType.OBJECT_INTERACTION_BUG,
    DifferenceType.TIMING_DIFFERENCE: PatternType.DAEMON_TIMING_DRIFT,
}


@dataclass(frozen=True)
class CommandDifference:
    """A single command whose outputs differ, typed for pattern analysis."""

    command_index: int
    command: str
    model_output: str
    reference_output: str
    difference_type: DifferenceType
    severity: IssueSeverity
    similarity: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "commandIndex": self.command_index,
            "command": self.command,
            "modelOutput": self.model_output,
            "referenceOutput": self.reference_output,
            "differenceType": self.difference_type.value,
            "severity": self.severity.value,
            "similarity": None if self.similarity is None else round(self.similarity, 4),
        }


@dataclass
class IssuePattern:
    """Two or more differences sharing a difference type."""

    type: DifferenceType
    pattern_type: PatternType
    frequency: int
    severity: IssueSeverity
    description: str
    sample_commands: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "patternType": self.pattern_type.value,
            "frequency": self.frequency,
            "severity": self.severity.value,
            "description": self.description,
            "sampleCommands": list(self.sample_commands),
        }


@dataclass
class Recommendation:
    """One prioritized follow-up action."""

    priority: IssueSeverity
    category: str
    action: str
    reasoning: str
    estimated_effort: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "priority": self.priority.value,
            "category": self.category,
            "action": self.action,
            "reasoning": self.reasoning,
            "estimatedEffort": self.estimated_effort,
        }


@dataclass
class IssueAnalysis:
    patterns: List[IssuePattern]
    overall_severity: IssueSeverity
    recommend_deep_analysis: bool
    recommendations: List[str]
    total_differences: int = 0
    difference_counts: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "patterns": [p.to_dict() for p in self.patterns],
            "overallSeverity": self.overall_severity.value,
            "recommendDeepAnalysis": self.recommend_deep_analysis,
            "recommendations": list(self.recommendations),
            "totalDifferences": self.total_differences,
            "differenceCounts": dict(self.difference_counts),
        }


@dataclass
class RecommendationThresholds:
    min_differences_for_deep_analysis: int = 3
    min_distinct_types_for_deep_analysis: int = 3
    max_parity_for_concern: float = 85.0
    critical_issue_threshold: int = 1
