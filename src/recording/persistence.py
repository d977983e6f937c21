"""Transcript record files: JSON arrays of entries validated against a schema."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Union

import jsonschema

from src.config.settings import load_schema
from src.recording.models import (
    Transcript,
    TranscriptEntry,
    TranscriptMetadata,
    TranscriptSource,
)

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def save_transcript(transcript: Transcript, path: PathLike) -> Path:
    """Write the transcript's entries as a JSON record."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    records = [entry.to_dict() for entry in transcript.entries]
    target.write_text(json.dumps(records, indent=2, ensure_ascii=False), encoding="utf-8")
    logger.info(f"Saved transcript {transcript.id} ({len(records)} entries) to {target}")
    return target


def load_entries(path: PathLike) -> List[TranscriptEntry]:
    """
    Read and validate a transcript record.

    Raises:
        ValueError: If the file is not valid JSON or does not match the schema
        FileNotFoundError: If the file does not exist
    """
    source = Path(path)
    try:
        data = json.loads(source.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"Transcript {source} is not valid JSON: {e}") from e

    try:
        jsonschema.validate(data, load_schema("transcript.schema.json"))
    except jsonschema.ValidationError as e:
        raise ValueError(f"Transcript {source} failed validation: {e.message}") from e

    return [TranscriptEntry.from_dict(item) for item in data]


def load_transcript(
    path: PathLike,
    source: TranscriptSource,
    transcript_id: Optional[str] = None,
) -> Transcript:
    """Load a record as a Transcript; the id defaults to the file stem."""
    file_path = Path(path)
    entries = load_entries(file_path)
    modified = datetime.fromtimestamp(file_path.stat().st_mtime, tz=timezone.utc)
    return Transcript(
        id=transcript_id or file_path.stem,
        source=source,
        start_time=modified,
        end_time=modified,
        entries=tuple(entries),
        metadata=TranscriptMetadata(extra={"path": str(file_path)}),
    )
