"""
Parity baseline persistence.

A baseline is the accepted set of differences for a known-good commit.
It is stored as versioned JSON and validated against
``baseline.schema.json`` on every load.
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import jsonschema

from src.analysis.difference_classifier import ClassifiedDifference, DifferenceClassification
from src.config.settings import DEFAULT_BASELINE_PATH, load_schema
from src.regression.exceptions import BaselineWriteError, MalformedBaseline, NoBaseline

logger = logging.getLogger(__name__)

BASELINE_VERSION = "1.0.0"
HASH_LENGTH = 16


def hash_difference(command: str, classification: DifferenceClassification) -> str:
    """Stable identity of a difference; outputs are excluded on purpose."""
    content = f"{command}:{classification.value}"
    return hashlib.sha256(content.encode("utf-8")).hexdigest()[:HASH_LENGTH]


@dataclass(frozen=True)
class BaselineDifference:
    command: str
    classification: DifferenceClassification
    reason: str
    hash: str

    @classmethod
    def from_classified(cls, diff: ClassifiedDifference) -> "BaselineDifference":
        return cls(
            command=diff.command,
            classification=diff.classification,
            reason=diff.reason,
            hash=hash_difference(diff.command, diff.classification),
        )

    def to_dict(self) -> Dict[str, str]:
        return {
            "command": self.command,
            "classification": self.classification.value,
            "reason": self.reason,
            "hash": self.hash,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BaselineDifference":
        return cls(
            command=data["command"],
            classification=DifferenceClassification(data["classification"]),
            reason=data["reason"],
            hash=data["hash"],
        )


@dataclass
class Baseline:
    established_at: str
    total_differences: int
    rng_differences: int
    state_divergences: int
    logic_differences: int
    seeds: List[int]
    commands_per_seed: int
    overall_parity_percentage: float
    differences: List[BaselineDifference] = field(default_factory=list)
    commit_hash: Optional[str] = None
    version: str = BASELINE_VERSION

    def logic_hashes(self) -> set:
        return {
            d.hash for d in self.differences
            if d.classification == DifferenceClassification.LOGIC_DIFFERENCE
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "commitHash": self.commit_hash,
            "establishedAt": self.established_at,
            "totalDifferences": self.total_differences,
            "summary": {
                "rngDifferences": self.rng_differences,
                "stateDivergences": self.state_divergences,
                "logicDifferences": self.logic_differences,
            },
            "seeds": list(self.seeds),
            "commandsPerSeed": self.commands_per_seed,
            "overallParityPercentage": self.overall_parity_percentage,
            "differences": [d.to_dict() for d in self.differences],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Baseline":
        summary = data["summary"]
        return cls(
            version=data["version"],
            commit_hash=data.get("commitHash"),
            established_at=data["establishedAt"],
            total_differences=data["totalDifferences"],
            rng_differences=summary["rngDifferences"],
            state_divergences=summary["stateDivergences"],
            logic_differences=summary["logicDifferences"],
            seeds=list(data["seeds"]),
            commands_per_seed=data["commandsPerSeed"],
            overall_parity_percentage=float(data["overallParityPercentage"]),
            differences=[BaselineDifference.from_dict(d) for d in data["differences"]],
        )

    @classmethod
    def from_run(cls, result, commit_hash: Optional[str] = None) -> "Baseline":
        """Snapshot a ParityRunResult."""
        return cls(
            established_at=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            commit_hash=commit_hash,
            total_differences=result.total_differences,
            rng_differences=result.rng_differences,
            state_divergences=result.state_divergences,
            logic_differences=result.logic_differences,
            seeds=list(result.seeds),
            commands_per_seed=result.commands_per_seed,
            overall_parity_percentage=result.overall_parity_percentage,
            differences=[BaselineDifference.from_classified(d) for d in result.differences],
        )


class BaselineStore:
    """Reads and writes one baseline file."""

    def __init__(self, path: Union[str, Path] = DEFAULT_BASELINE_PATH) -> None:
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.is_file()

    def save(self, baseline: Baseline) -> Path:
        payload = baseline.to_dict()
        jsonschema.validate(payload, load_schema("baseline.schema.json"))
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
        except OSError as e:
            raise BaselineWriteError(f"Cannot write baseline {self.path}: {e}") from e
        logger.info(
            f"Baseline written to {self.path} "
            f"({baseline.total_differences} differences, commit {baseline.commit_hash or 'N/A'})"
        )
        return self.path

    def load(self) -> Baseline:
        """
        Load and validate the baseline.

        Raises:
            NoBaseline: If the file does not exist
            MalformedBaseline: If it is not UTF-8 JSON or fails schema validation
        """
        if not self.exists():
            raise NoBaseline(f"No baseline found at {self.path}")

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise MalformedBaseline(f"Cannot read baseline {self.path}: {e}") from e

        try:
            jsonschema.validate(data, load_schema("baseline.schema.json"))
        except jsonschema.ValidationError as e:
            raise MalformedBaseline(
                f"Baseline {self.path} failed validation: {e.message}"
            ) from e

        return Baseline.from_dict(data)
