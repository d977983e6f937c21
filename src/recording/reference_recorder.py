"""
Reference interpreter recorder.

Drives an external Z-machine interpreter (dfrotz) over its stdin/stdout
REPL. stdout is drained by a reader thread into a queue so every read
has an explicit deadline; a response is complete once the accumulated
text ends with a bare ``>`` prompt line.
"""

from __future__ import annotations

import codecs
import os
import queue
import re
import subprocess
import threading
import time
from typing import List, Optional, Sequence, Tuple

import psutil

from src.config.settings import RecorderConfig, resolve_executable
from src.recording.base import GameRecorder
from src.recording.exceptions import (
    ProcessCleanupError,
    ProcessSpawnError,
    RecorderTimeout,
    RecorderUnavailable,
)
from src.recording.models import (
    RecordingOptions,
    Transcript,
    TranscriptBuilder,
    TranscriptMetadata,
    TranscriptSource,
    make_transcript_id,
)
from src.utils.logger import StructuredLogger, get_logger, log_operation, truncate_text

REFERENCE_GAME_VERSION = "original-z3"

PROMPT_PATTERN = re.compile(r"(?:^|\n)>\s*$")
ANSI_ESCAPE_PATTERN = re.compile(r"\x1b\[[0-9;]*m")

READ_CHUNK_SIZE = 4096
QUIT_GRACE_SECONDS = 0.5
READER_JOIN_SECONDS = 1.0


def clean_interpreter_output(raw: str, preserve_formatting: bool = False) -> str:
    """Strip ANSI codes, carriage returns and the trailing prompt."""
    text = ANSI_ESCAPE_PATTERN.sub("", raw).replace("\r", "")
    text = PROMPT_PATTERN.sub("", text)
    if preserve_formatting:
        return text.strip("\n")
    return text.strip()


def has_prompt(raw: str) -> bool:
    text = ANSI_ESCAPE_PATTERN.sub("", raw).replace("\r", "")
    return PROMPT_PATTERN.search(text) is not None


class ReferenceRecorder(GameRecorder):
    """
    Records transcripts from the reference interpreter.

    One interpreter process is spawned per recording and always reaped
    before ``record()`` returns.
    """

    def __init__(
        self, config: RecorderConfig, logger: Optional[StructuredLogger] = None
    ) -> None:
        self.config = config
        self.logger = logger or get_logger(__name__)
        self._lock = threading.Lock()
        self._process: Optional[subprocess.Popen] = None
        self._aborted = threading.Event()

    def is_available(self) -> bool:
        if not self.config.interpreter_path:
            return False
        if resolve_executable(self.config.interpreter_path) is None:
            return False
        return os.path.isfile(self.config.game_file_path)

    def abort(self) -> None:
        """
        Kill the live interpreter session.

        An abort that arrives before the interpreter is spawned cancels the
        recording in progress; it stays pending until that recording ends.
        """
        with self._lock:
            self._aborted.set()
            process = self._process
        if process is not None and process.poll() is None:
            self.logger.warning(
                "Aborting reference interpreter session",
                operation="record_reference",
                context={"pid": process.pid},
            )
            self._terminate_tree(process)

    @log_operation("record_reference")
    def record(
        self, commands: Sequence[str], options: Optional[RecordingOptions] = None
    ) -> Transcript:
        options = options or RecordingOptions()
        try:
            return self._record_session(commands, options)
        finally:
            self._aborted.clear()

    def _record_session(self, commands: Sequence[str], options: RecordingOptions) -> Transcript:
        self._ensure_available()
        process = self._spawn()
        chunks: "queue.Queue[Optional[str]]" = queue.Queue()
        reader = threading.Thread(
            target=self._drain_stdout, args=(process, chunks), daemon=True
        )
        reader.start()

        builder = TranscriptBuilder(capture_timestamps=options.capture_timestamps)
        truncated = False

        try:
            raw, eof = self._read_response(chunks)
            builder.add("", clean_interpreter_output(raw, options.preserve_formatting), 0)

            for turn, command in enumerate(commands, start=1):
                if eof:
                    truncated = True
                    break
                if not self._send(process, command):
                    truncated = True
                    break

                raw, eof = self._read_response(chunks)
                output = clean_interpreter_output(raw, options.preserve_formatting)
                builder.add(command, output, turn)
                self.logger.debug(
                    "Recorded reference response",
                    operation="record_reference",
                    context={"command": command, "output": truncate_text(output)},
                )

            if eof and len(builder) - 1 < len(commands):
                truncated = True
        finally:
            self._cleanup(process)
            reader.join(timeout=READER_JOIN_SECONDS)
            if process.stdout is not None and not reader.is_alive():
                process.stdout.close()
            with self._lock:
                self._process = None

        if truncated:
            self.logger.warning(
                "Interpreter ended the session early",
                operation="record_reference",
                context={
                    "answered": len(builder) - 1,
                    "requested": len(commands),
                    "seed": options.seed,
                },
            )

        return builder.build(
            make_transcript_id("zm"),
            TranscriptSource.REFERENCE,
            TranscriptMetadata(
                seed=options.seed,
                interpreter_path=self.config.interpreter_path,
                game_version=REFERENCE_GAME_VERSION,
                extra={"game_file": self.config.game_file_path, "truncated": truncated},
            ),
        )

    def _ensure_available(self) -> None:
        if not self.config.interpreter_path:
            raise RecorderUnavailable("No reference interpreter configured")
        if resolve_executable(self.config.interpreter_path) is None:
            raise RecorderUnavailable(
                f"Reference interpreter not found: {self.config.interpreter_path}"
            )
        if not os.path.isfile(self.config.game_file_path):
            raise RecorderUnavailable(f"Game file not found: {self.config.game_file_path}")

    def build_command_line(self) -> List[str]:
        return [
            self.config.interpreter_path,
            *self.config.interpreter_args,
            self.config.game_file_path,
        ]

    def _spawn(self) -> subprocess.Popen:
        args = self.build_command_line()
        try:
            process = subprocess.Popen(
                args,
                stdin=subprocess.PIPE,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                bufsize=0,
            )
        except OSError as e:
            raise ProcessSpawnError(f"Failed to start {args[0]}: {e}") from e

        with self._lock:
            aborted = self._aborted.is_set()
            if not aborted:
                self._process = process

        if aborted:
            self._terminate_tree(process)
            for pipe in (process.stdin, process.stdout):
                if pipe is not None:
                    pipe.close()
            raise RecorderTimeout("Reference recording aborted before the interpreter started")

        self.logger.info(
            "Spawned reference interpreter",
            operation="record_reference",
            context={"pid": process.pid, "args": args},
        )
        return process

    @staticmethod
    def _drain_stdout(process: subprocess.Popen, chunks: "queue.Queue[Optional[str]]") -> None:
        fd = process.stdout.fileno()
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        try:
            while True:
                data = os.read(fd, READ_CHUNK_SIZE)
                if not data:
                    break
                text = decoder.decode(data)
                if text:
                    chunks.put(text)
        except OSError:
            pass
        finally:
            # None marks end of stream
            chunks.put(None)

    def _read_response(self, chunks: "queue.Queue[Optional[str]]") -> Tuple[str, bool]:
        """
        Accumulate output until the prompt appears or the stream closes.

        Returns:
            ``(raw_text, eof)``

        Raises:
            RecorderTimeout: If no prompt is seen before the deadline, or the
                session was aborted
        """
        timeout_s = self.config.timeout_ms / 1000
        deadline = time.monotonic() + timeout_s
        buffer = ""

        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise RecorderTimeout(
                    f"No prompt from interpreter within {self.config.timeout_ms}ms"
                )
            try:
                chunk = chunks.get(timeout=remaining)
            except queue.Empty:
                raise RecorderTimeout(
                    f"No prompt from interpreter within {self.config.timeout_ms}ms"
                ) from None

            if chunk is None:
                if self._aborted.is_set():
                    raise RecorderTimeout("Reference recording aborted")
                return buffer, True

            buffer += chunk
            if has_prompt(buffer):
                return buffer, False

    def _send(self, process: subprocess.Popen, command: str) -> bool:
        """Write one command line; False when the interpreter's stdin is gone."""
        try:
            process.stdin.write(f"{command}\n".encode("utf-8"))
            process.stdin.flush()
            return True
        except (BrokenPipeError, OSError) as e:
            self.logger.warning(
                "Interpreter stdin closed",
                operation="record_reference",
                context={"command": command},
                error=str(e),
            )
            return False

    def _cleanup(self, process: subprocess.Popen) -> None:
        """
        Shut the interpreter down and reap it.

        Raises:
            ProcessCleanupError: If the process survives terminate and kill
        """
        if process.poll() is None:
            try:
                process.stdin.write(b"quit\ny\n")
                process.stdin.flush()
            except (BrokenPipeError, OSError):
                pass
        try:
            process.stdin.close()
        except (BrokenPipeError, OSError):
            pass

        try:
            process.wait(timeout=QUIT_GRACE_SECONDS)
        except subprocess.TimeoutExpired:
            self._terminate_tree(process)

        if process.poll() is None:
            raise ProcessCleanupError(f"Interpreter process {process.pid} did not exit")

    def _terminate_tree(self, process: subprocess.Popen) -> None:
        """Terminate the process and its children, escalating to kill."""
        kill_timeout = self.config.kill_timeout_ms / 1000

        try:
            parent = psutil.Process(process.pid)
            procs = parent.children(recursive=True) + [parent]
        except psutil.NoSuchProcess:
            procs = []

        for proc in procs:
            try:
                proc.terminate()
            except psutil.NoSuchProcess:
                continue

        _, alive = psutil.wait_procs(procs, timeout=kill_timeout)
        for proc in alive:
            try:
                proc.kill()
            except psutil.NoSuchProcess:
                continue
        psutil.wait_procs(alive, timeout=kill_timeout)

        try:
            process.wait(timeout=kill_timeout)
        except subprocess.TimeoutExpired:
            self.logger.error(
                "Interpreter survived kill",
                operation="record_reference",
                context={"pid": process.pid},
            )
