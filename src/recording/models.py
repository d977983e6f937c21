"""
Transcript domain model.

A transcript is the ordered record of what one implementation printed
while executing a command sequence. Entry 0 holds the initial output
shown before any command; entry i holds the response to command i.
"""

from __future__ import annotations

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: datetime) -> str:
    return value.isoformat().replace("+00:00", "Z")


class TranscriptSource(Enum):
    """Implementation a transcript was recorded from."""

    MODEL = "model"
    REFERENCE = "reference"


@dataclass(frozen=True)
class TranscriptEntry:
    """
    One command/response pair.

    Attributes:
        index: Position in the transcript (0 = initial output)
        command: Command text sent ("" for the initial entry)
        output: Cleaned game output for this turn
        turn_number: Turn counter reported by the implementation
        timestamp: Capture time, only set when timestamps are requested
    """

    index: int
    command: str
    output: str
    turn_number: int
    timestamp: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "index": self.index,
            "command": self.command,
            "output": self.output,
            "turnNumber": self.turn_number,
        }
        if self.timestamp is not None:
            data["timestamp"] = self.timestamp
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TranscriptEntry":
        return cls(
            index=int(data["index"]),
            command=data["command"],
            output=data["output"],
            turn_number=int(data["turnNumber"]),
            timestamp=data.get("timestamp"),
        )


@dataclass
class RecordingOptions:
    """Per-recording options shared by both recorders."""

    seed: Optional[int] = None
    capture_timestamps: bool = False
    preserve_formatting: bool = False


@dataclass
class TranscriptMetadata:
    """Provenance details attached to a transcript."""

    seed: Optional[int] = None
    interpreter_path: Optional[str] = None
    game_version: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Transcript:
    """
    Complete recording from one implementation.

    Entries are contiguous from index 0. A successful recording of N
    commands holds N + 1 entries; a reference session that ends early
    (game over, interpreter crash) holds fewer.
    """

    id: str
    source: TranscriptSource
    start_time: datetime
    end_time: datetime
    entries: Tuple[TranscriptEntry, ...]
    metadata: TranscriptMetadata = field(default_factory=TranscriptMetadata)

    def __post_init__(self) -> None:
        self.entries = tuple(self.entries)
        for position, entry in enumerate(self.entries):
            if entry.index != position:
                raise ValueError(
                    f"Transcript {self.id} entries must be contiguous from 0; "
                    f"found index {entry.index} at position {position}"
                )

    @property
    def command_count(self) -> int:
        """Number of commands answered (the initial entry is not a command)."""
        return max(len(self.entries) - 1, 0)

    @property
    def duration_ms(self) -> float:
        return (self.end_time - self.start_time).total_seconds() * 1000

    def entry_at(self, index: int) -> Optional[TranscriptEntry]:
        if 0 <= index < len(self.entries):
            return self.entries[index]
        return None

    def commands(self) -> List[str]:
        return [entry.command for entry in self.entries[1:]]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "source": self.source.value,
            "startTime": _iso(self.start_time),
            "endTime": _iso(self.end_time),
            "entries": [entry.to_dict() for entry in self.entries],
            "metadata": self.metadata.to_dict(),
        }


class TranscriptBuilder:
    """Accumulates entries during a recording session."""

    def __init__(self, capture_timestamps: bool = False) -> None:
        self.capture_timestamps = capture_timestamps
        self.start_time = _utc_now()
        self._entries: List[TranscriptEntry] = []

    def add(self, command: str, output: str, turn_number: int) -> TranscriptEntry:
        entry = TranscriptEntry(
            index=len(self._entries),
            command=command,
            output=output,
            turn_number=turn_number,
            timestamp=_iso(_utc_now()) if self.capture_timestamps else None,
        )
        self._entries.append(entry)
        return entry

    def __len__(self) -> int:
        return len(self._entries)

    def build(
        self,
        transcript_id: str,
        source: TranscriptSource,
        metadata: Optional[TranscriptMetadata] = None,
    ) -> Transcript:
        return Transcript(
            id=transcript_id,
            source=source,
            start_time=self.start_time,
            end_time=_utc_now(),
            entries=tuple(self._entries),
            metadata=metadata or TranscriptMetadata(),
        )


def make_transcript_id(prefix: str, seed: Optional[int] = None) -> str:
    """Build ids such as ``ts-2026-10-18T09:00:00Z-seed12345``."""
    stamp = _iso(_utc_now().replace(microsecond=0))
    if seed is None:
        return f"{prefix}-{stamp}"
    return f"{prefix}-{stamp}-seed{seed}"
