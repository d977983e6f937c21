"""Recorder that drives the in-process model engine."""

from __future__ import annotations

import threading
from typing import Callable, Optional, Sequence

from src.recording.base import GameEngine, GameRecorder
from src.recording.exceptions import RecorderError, RecorderTimeout, RecorderUnavailable
from src.recording.models import (
    RecordingOptions,
    Transcript,
    TranscriptBuilder,
    TranscriptMetadata,
    TranscriptSource,
    make_transcript_id,
)
from src.utils.logger import get_logger, log_operation, truncate_text, StructuredLogger

MODEL_GAME_VERSION = "model-engine"


class ModelRecorder(GameRecorder):
    """
    Records transcripts from the reimplemented engine.

    A fresh engine is created per recording so that repeated recordings
    with the same seed are independent and deterministic.
    """

    def __init__(
        self,
        engine_factory: Optional[Callable[[], GameEngine]],
        logger: Optional[StructuredLogger] = None,
    ) -> None:
        self.engine_factory = engine_factory
        self.logger = logger or get_logger(__name__)
        self._abort = threading.Event()

    def is_available(self) -> bool:
        return self.engine_factory is not None

    def abort(self) -> None:
        self._abort.set()

    def create_engine(self, seed: Optional[int] = None) -> GameEngine:
        """
        Build and reset an engine instance.

        Raises:
            RecorderUnavailable: If no factory is configured or construction fails
        """
        if self.engine_factory is None:
            raise RecorderUnavailable("Model engine is not configured")
        try:
            engine = self.engine_factory()
            engine.reset(seed)
        except Exception as e:
            raise RecorderUnavailable(f"Model engine failed to initialize: {e}") from e
        return engine

    @log_operation("record_model")
    def record(
        self, commands: Sequence[str], options: Optional[RecordingOptions] = None
    ) -> Transcript:
        options = options or RecordingOptions()
        self._abort.clear()

        engine = self.create_engine(options.seed)
        builder = TranscriptBuilder(capture_timestamps=options.capture_timestamps)

        try:
            initial = engine.initial_output()
        except Exception as e:
            raise RecorderError(f"Model engine failed to produce initial output: {e}") from e
        builder.add("", initial, 0)

        turn_number = 0
        for command in commands:
            if self._abort.is_set():
                raise RecorderTimeout(
                    f"Model recording aborted after {len(builder) - 1} of {len(commands)} commands"
                )

            try:
                result = engine.execute(command)
                output = result.output
                turn_number = result.turn_number
            except Exception as e:
                output = f"[Error: {e}]"
                turn_number += 1
                self.logger.warning(
                    "Model engine raised while executing command",
                    operation="record_model",
                    context={"command": command, "seed": options.seed},
                    error=str(e),
                )

            builder.add(command, output, turn_number)
            self.logger.debug(
                "Recorded model response",
                operation="record_model",
                context={"command": command, "output": truncate_text(output)},
            )

        return builder.build(
            make_transcript_id("ts", options.seed),
            TranscriptSource.MODEL,
            TranscriptMetadata(seed=options.seed, game_version=MODEL_GAME_VERSION),
        )
