"""Run the model and reference recorders side by side under one deadline."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence

from src.recording.base import GameRecorder
from src.recording.exceptions import RecorderTimeout
from src.recording.models import RecordingOptions, Transcript

logger = logging.getLogger(__name__)


@dataclass
class RecordingOutcome:
    """Per-recorder transcripts, plus the error for each recorder that failed."""

    transcripts: Dict[str, Transcript] = field(default_factory=dict)
    errors: Dict[str, Exception] = field(default_factory=dict)

    def raise_for(self, name: str) -> Transcript:
        """Transcript for ``name``, re-raising its recording error."""
        if name in self.errors:
            raise self.errors[name]
        return self.transcripts[name]


def record_concurrently(
    recorders: Dict[str, GameRecorder],
    commands: Sequence[str],
    options: Optional[RecordingOptions] = None,
    timeout_ms: int = 300000,
) -> RecordingOutcome:
    """
    Record the same commands on every recorder in parallel.

    Raises:
        RecorderTimeout: If any recorder is still running at the deadline.
            All recorders are aborted first.
    """
    options = options or RecordingOptions()
    outcome = RecordingOutcome()

    executor = ThreadPoolExecutor(max_workers=max(len(recorders), 1))
    futures = {
        executor.submit(recorder.record, list(commands), options): name
        for name, recorder in recorders.items()
    }

    done, pending = wait(futures, timeout=timeout_ms / 1000)

    if pending:
        late = sorted(futures[f] for f in pending)
        logger.error(f"Recording exceeded {timeout_ms}ms; aborting {', '.join(late)}")
        for recorder in recorders.values():
            recorder.abort()
        executor.shutdown(wait=False)
        raise RecorderTimeout(
            f"Recording did not finish within {timeout_ms}ms (still running: {', '.join(late)})"
        )

    executor.shutdown(wait=True)

    for future in done:
        name = futures[future]
        error = future.exception()
        if error is not None:
            outcome.errors[name] = error
        else:
            outcome.transcripts[name] = future.result()

    return outcome
