"""Recorder and engine interfaces."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence

from src.recording.models import RecordingOptions, Transcript
from src.spot_testing.models import GameContext


@dataclass(frozen=True)
class CommandResult:
    """What the engine under test returns for one command."""

    output: str
    turn_number: int


class GameEngine(ABC):
    """
    The model engine as seen by the parity tooling.

    Implementations wrap the reimplemented game; nothing else about the
    engine is assumed.
    """

    @abstractmethod
    def reset(self, seed: Optional[int] = None) -> None:
        """Start a fresh game, seeding the engine's random source."""

    @abstractmethod
    def initial_output(self) -> str:
        """Text shown before the first command (banner and opening room)."""

    @abstractmethod
    def execute(self, command: str) -> CommandResult:
        """Run one command and return its output plus the turn counter."""

    def describe_context(self) -> Optional[GameContext]:
        """Current location, objects and exits; None when not supported."""
        return None


class GameRecorder(ABC):
    """Produces a Transcript by executing commands against one implementation."""

    @abstractmethod
    def record(
        self, commands: Sequence[str], options: Optional[RecordingOptions] = None
    ) -> Transcript:
        """
        Execute ``commands`` in order and return the transcript.

        Raises:
            RecorderUnavailable: If the implementation cannot be reached
            RecorderTimeout: If a response is not observed in time
        """

    @abstractmethod
    def is_available(self) -> bool:
        """Cheap availability check; must not start any process."""

    def abort(self) -> None:
        """Stop an in-flight recording from another thread."""
