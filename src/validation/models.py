"""Multi-seed parity run results."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from src.analysis.difference_classifier import ClassifiedDifference, DifferenceClassification


@dataclass
class SeedResult:
    """Classified outcome of one seed."""

    seed: int
    total_commands: int
    matching_responses: int
    differences: List[ClassifiedDifference] = field(default_factory=list)
    execution_time_ms: float = 0.0
    model_transcript_id: Optional[str] = None
    reference_transcript_id: Optional[str] = None

    def count(self, classification: DifferenceClassification) -> int:
        return sum(1 for d in self.differences if d.classification == classification)

    @property
    def parity_percentage(self) -> float:
        if self.total_commands == 0:
            return 100.0
        return self.matching_responses / self.total_commands * 100

    def to_dict(self) -> Dict[str, Any]:
        return {
            "seed": self.seed,
            "totalCommands": self.total_commands,
            "matchingResponses": self.matching_responses,
            "parityPercentage": round(self.parity_percentage, 2),
            "rngDifferences": self.count(DifferenceClassification.RNG_DIFFERENCE),
            "stateDivergences": self.count(DifferenceClassification.STATE_DIVERGENCE),
            "logicDifferences": self.count(DifferenceClassification.LOGIC_DIFFERENCE),
            "executionTimeMs": round(self.execution_time_ms, 2),
            "modelTranscriptId": self.model_transcript_id,
            "referenceTranscriptId": self.reference_transcript_id,
            "differences": [d.to_dict() for d in self.differences],
        }


@dataclass
class ParityRunResult:
    """
    Aggregate of every seed in a parity run.

    ``passed`` means no logic differences; random-message and state
    differences are expected between independently seeded games.
    """

    seeds: List[int]
    commands_per_seed: int
    seed_results: Dict[int, SeedResult] = field(default_factory=dict)
    execution_time_ms: float = 0.0

    @property
    def differences(self) -> List[ClassifiedDifference]:
        return [d for seed in self.seeds if seed in self.seed_results
                for d in self.seed_results[seed].differences]

    @property
    def total_commands(self) -> int:
        return sum(r.total_commands for r in self.seed_results.values())

    @property
    def matching_responses(self) -> int:
        return sum(r.matching_responses for r in self.seed_results.values())

    @property
    def total_differences(self) -> int:
        return len(self.differences)

    def count(self, classification: DifferenceClassification) -> int:
        return sum(r.count(classification) for r in self.seed_results.values())

    @property
    def rng_differences(self) -> int:
        return self.count(DifferenceClassification.RNG_DIFFERENCE)

    @property
    def state_divergences(self) -> int:
        return self.count(DifferenceClassification.STATE_DIVERGENCE)

    @property
    def logic_differences(self) -> int:
        return self.count(DifferenceClassification.LOGIC_DIFFERENCE)

    @property
    def overall_parity_percentage(self) -> float:
        total = self.total_commands
        if total == 0:
            return 100.0
        return round(self.matching_responses / total * 100, 2)

    @property
    def passed(self) -> bool:
        return self.logic_differences == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "seeds": list(self.seeds),
            "commandsPerSeed": self.commands_per_seed,
            "totalCommands": self.total_commands,
            "matchingResponses": self.matching_responses,
            "totalDifferences": self.total_differences,
            "rngDifferences": self.rng_differences,
            "stateDivergences": self.state_divergences,
            "logicDifferences": self.logic_differences,
            "overallParityPercentage": self.overall_parity_percentage,
            "passed": self.passed,
            "executionTimeMs": round(self.execution_time_ms, 2),
            "seedResults": [
                self.seed_results[seed].to_dict() for seed in self.seeds
                if seed in self.seed_results
            ],
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)
