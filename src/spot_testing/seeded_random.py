"""Deterministic linear congruential generator for reproducible test runs."""

from __future__ import annotations

from typing import Optional, Sequence, TypeVar

T = TypeVar("T")

LCG_MULTIPLIER = 1664525
LCG_INCREMENT = 1013904223
LCG_MODULUS = 2 ** 32


class SeededRandom:
    """
    LCG with the Numerical Recipes constants.

    The same seed always yields the same sequence, independent of Python's
    ``random`` module and of platform.
    """

    def __init__(self, seed: int = 12345) -> None:
        self.initial_seed = seed
        self.state = seed % LCG_MODULUS

    def next(self) -> float:
        """Next value in [0, 1)."""
        self.state = (LCG_MULTIPLIER * self.state + LCG_INCREMENT) % LCG_MODULUS
        return self.state / LCG_MODULUS

    def next_int(self, low: int, high: int) -> int:
        """Integer in [low, high)."""
        return int(self.next() * (high - low)) + low

    def choice(self, items: Sequence[T]) -> T:
        if not items:
            raise IndexError("Cannot choose from an empty sequence")
        return items[self.next_int(0, len(items))]

    def reset(self, seed: Optional[int] = None) -> None:
        """Restart the sequence, optionally from a new seed."""
        if seed is not None:
            self.initial_seed = seed
        self.state = self.initial_seed % LCG_MODULUS
