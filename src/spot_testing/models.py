"""Spot-testing data model: command typing, generation context and results."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from src.analysis.models import CommandDifference, IssueAnalysis, IssuePattern, Recommendation


class CommandType(Enum):
    MOVEMENT = "movement"
    OBJECT_INTERACTION = "object_interaction"
    EXAMINATION = "examination"
    INVENTORY = "inventory"
    PUZZLE_ACTION = "puzzle_action"
    COMMUNICATION = "communication"


class GameArea(Enum):
    HOUSE = "house"
    FOREST = "forest"
    UNDERGROUND = "underground"
    MAZE = "maze"
    ENDGAME = "endgame"


@dataclass
class GameContext:
    """
    Snapshot of what the player can currently act on.

    Supplied by the engine under test when it can describe itself;
    otherwise the opening position of the game is assumed.
    """

    current_location: str = "West of House"
    visible_objects: List[str] = field(default_factory=lambda: ["mailbox", "door"])
    inventory: List[str] = field(default_factory=list)
    available_directions: List[str] = field(
        default_factory=lambda: ["north", "south", "west"]
    )
    flags: Dict[str, bool] = field(default_factory=dict)


@dataclass(frozen=True)
class GeneratedCommand:
    command: str
    expected_type: CommandType
    weight: float


@dataclass
class SpotTestResult:
    """Outcome of one spot-test run."""

    seed: int
    total_commands: int
    commands: List[str]
    differences: List[CommandDifference]
    parity_score: float
    execution_time_ms: float
    analysis: IssueAnalysis
    recommendations: List[Recommendation]
    reference_available: bool = True
    transcript_ids: Dict[str, str] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)

    @property
    def recommend_deep_analysis(self) -> bool:
        return self.analysis.recommend_deep_analysis

    @property
    def issue_patterns(self) -> List[IssuePattern]:
        return self.analysis.patterns

    def passed(self, threshold: float) -> bool:
        return self.parity_score >= threshold

    def to_dict(self) -> Dict[str, Any]:
        return {
            "seed": self.seed,
            "totalCommands": self.total_commands,
            "parityScore": self.parity_score,
            "executionTimeMs": round(self.execution_time_ms, 2),
            "referenceAvailable": self.reference_available,
            "recommendDeepAnalysis": self.recommend_deep_analysis,
            "transcriptIds": dict(self.transcript_ids),
            "commands": list(self.commands),
            "differences": [d.to_dict() for d in self.differences],
            "analysis": self.analysis.to_dict(),
            "recommendations": [r.to_dict() for r in self.recommendations],
            "warnings": list(self.warnings),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)


def parse_enum_list(values: Optional[List[str]], enum_cls) -> List[Any]:
    """Convert raw strings to enum members, raising ValueError on unknown names."""
    if not values:
        return []
    members = []
    for raw in values:
        value = raw.strip().lower()
        if not value:
            continue
        members.append(enum_cls(value))
    return members
