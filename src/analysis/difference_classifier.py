"""
Difference classifier for the regression gate.

Labels each mismatching model/reference response pair as an expected
random-message variation, a downstream effect of diverged game state, or
a genuine logic difference. Only logic differences can fail CI.
"""

from __future__ import annotations

import logging
import re
import string
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


class DifferenceClassification(Enum):
    RNG_DIFFERENCE = "RNG_DIFFERENCE"
    STATE_DIVERGENCE = "STATE_DIVERGENCE"
    LOGIC_DIFFERENCE = "LOGIC_DIFFERENCE"


# Random message pools of the original game
RNG_POOLS = {
    "YUKS": (
        "A valiant attempt.",
        "You can't be serious.",
        "An interesting idea...",
        "What a concept!",
    ),
    "HO_HUM": (
        " doesn't seem to work.",
        " isn't notably helpful.",
        " has no effect.",
    ),
    "HELLOS": (
        "Hello.",
        "Good day.",
        "Nice weather we've been having lately.",
        "Goodbye.",
    ),
    "WHEEEEE": (
        "Very good. Now you can go to the second grade.",
        "Are you enjoying yourself?",
        "Wheeeeeeeeee!!!!!",
        "Do you expect me to applaud?",
    ),
    "JUMPLOSS": (
        "You should have looked before you leaped.",
        "In the movies, your life would be passing before your eyes.",
        "Geronimo...",
    ),
}

BLOCKED_EXIT_PATTERNS = [
    re.compile(r"You can't go that way", re.IGNORECASE),
    re.compile(r"There is no way to go", re.IGNORECASE),
    re.compile(r"The door is (closed|locked)", re.IGNORECASE),
    re.compile(r"You can't fit through", re.IGNORECASE),
    re.compile(r"blocked", re.IGNORECASE),
]

RNG_DIVERGENCE_LIMIT = 3

_PUNCTUATION_TABLE = str.maketrans("", "", string.punctuation)


def same_rng_pool(model_output: str, reference_output: str) -> Optional[str]:
    for name, pool in RNG_POOLS.items():
        model_hit = any(variant in model_output for variant in pool)
        reference_hit = any(variant in reference_output for variant in pool)
        if model_hit and reference_hit:
            return name
    return None


def semantic_form(response: str) -> str:
    """Lowercase, punctuation stripped, whitespace collapsed."""
    return " ".join(response.lower().translate(_PUNCTUATION_TABLE).split())


def are_semantically_equivalent(first: str, second: str) -> bool:
    return semantic_form(first) == semantic_form(second)


def is_blocked_exit(output: str) -> bool:
    return any(pattern.search(output) for pattern in BLOCKED_EXIT_PATTERNS)


@dataclass(frozen=True)
class ClassifiedDifference:
    command_index: int
    command: str
    model_output: str
    reference_output: str
    classification: DifferenceClassification
    reason: str
    confidence: float

    def to_dict(self) -> Dict[str, object]:
        return {
            "commandIndex": self.command_index,
            "command": self.command,
            "modelOutput": self.model_output,
            "referenceOutput": self.reference_output,
            "classification": self.classification.value,
            "reason": self.reason,
            "confidence": self.confidence,
        }


class DifferenceClassifier:
    """
    Stateful classifier for one recording session.

    Earlier classifications feed later ones: once random variations pile
    up, the two games are assumed to have drifted apart. Call ``reset()``
    between seeds.
    """

    def __init__(self) -> None:
        self._history: List[ClassifiedDifference] = []
        self._diverged = False

    def reset(self) -> None:
        self._history = []
        self._diverged = False

    @property
    def history(self) -> List[ClassifiedDifference]:
        return list(self._history)

    def _rng_count(self) -> int:
        return sum(
            1 for d in self._history
            if d.classification == DifferenceClassification.RNG_DIFFERENCE
        )

    def is_state_diverged(self) -> bool:
        return self._diverged or self._rng_count() > RNG_DIVERGENCE_LIMIT

    def classify(
        self,
        model_output: str,
        reference_output: str,
        command: str,
        command_index: int,
    ) -> ClassifiedDifference:
        classification, reason, confidence = self._decide(model_output, reference_output)

        result = ClassifiedDifference(
            command_index=command_index,
            command=command,
            model_output=model_output,
            reference_output=reference_output,
            classification=classification,
            reason=reason,
            confidence=confidence,
        )

        if classification == DifferenceClassification.STATE_DIVERGENCE:
            self._diverged = True
        self._history.append(result)

        logger.debug(f"[{command_index}] {command!r} -> {classification.value}: {reason}")
        return result

    def _decide(self, model_output: str, reference_output: str):
        pool = same_rng_pool(model_output, reference_output)
        if pool:
            return (
                DifferenceClassification.RNG_DIFFERENCE,
                f"Both outputs are from the {pool} RNG pool",
                0.95,
            )

        if are_semantically_equivalent(model_output, reference_output):
            return (
                DifferenceClassification.RNG_DIFFERENCE,
                "Responses are semantically equivalent",
                0.9,
            )

        if self.is_state_diverged():
            if is_blocked_exit(model_output) and is_blocked_exit(reference_output):
                return (
                    DifferenceClassification.STATE_DIVERGENCE,
                    "Blocked exit message during state divergence",
                    0.85,
                )
            return (
                DifferenceClassification.STATE_DIVERGENCE,
                "Game states have diverged due to accumulated RNG effects",
                0.7,
            )

        if self._rng_count() > 0 and (
            is_blocked_exit(model_output) != is_blocked_exit(reference_output)
        ):
            return (
                DifferenceClassification.STATE_DIVERGENCE,
                "Blocked exit on one side after earlier random divergence",
                0.6,
            )

        return (
            DifferenceClassification.LOGIC_DIFFERENCE,
            "Difference cannot be attributed to RNG or state divergence",
            0.8,
        )

    def get_difference_counts(self) -> Dict[str, int]:
        counts = {c.value: 0 for c in DifferenceClassification}
        for diff in self._history:
            counts[diff.classification.value] += 1
        return counts
