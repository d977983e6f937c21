"""
Shared fixtures for the parity engine test suite.

Provides a deterministic in-process game engine, a scripted recorder that
stands in for the reference interpreter, and a tiny dfrotz-like REPL
script for exercising the real subprocess recorder.
"""

import sys
import textwrap
import threading
from typing import Callable, Dict, Optional, Sequence

import pytest

from src.config.settings import RecorderConfig
from src.recording.base import CommandResult, GameEngine, GameRecorder
from src.recording.exceptions import RecorderTimeout, RecorderUnavailable
from src.recording.models import (
    RecordingOptions,
    Transcript,
    TranscriptBuilder,
    TranscriptMetadata,
    TranscriptSource,
    make_transcript_id,
)
from src.spot_testing.models import GameContext

OPENING_OUTPUT = (
    "West of House\n"
    "You are standing in an open field west of a white house, with a boarded front door.\n"
    "There is a small mailbox here."
)

DEFAULT_RESPONSES: Dict[str, str] = {
    "look": OPENING_OUTPUT,
    "inventory": "You are empty-handed.",
    "i": "You are empty-handed.",
    "open mailbox": "Opening the small mailbox reveals a leaflet.",
    "take leaflet": "Taken.",
    "north": "North of House\nYou are facing the north side of a white house.",
    "n": "North of House\nYou are facing the north side of a white house.",
    "south": "South of House\nYou are facing the south side of a white house.",
    "west": "Forest\nThis is a forest, with trees in all directions.",
    "hello": "Hello.",
    "wait": "Time passes...",
}


def respond(command: str, overrides: Optional[Dict[str, str]] = None) -> str:
    """Deterministic response shared by the fake engine and the scripted recorder."""
    if overrides and command in overrides:
        return overrides[command]
    if command in DEFAULT_RESPONSES:
        return DEFAULT_RESPONSES[command]
    return f"Nothing happens when you {command}."


class FakeEngine(GameEngine):
    """Table-driven engine; ``failing_command`` makes ``execute`` raise."""

    def __init__(
        self,
        responses: Optional[Dict[str, str]] = None,
        failing_command: Optional[str] = None,
        context: Optional[GameContext] = None,
    ):
        self.responses = responses or {}
        self.failing_command = failing_command
        self.context = context
        self.seed = None
        self.turn = 0
        self.executed = []

    def reset(self, seed=None):
        self.seed = seed
        self.turn = 0
        self.executed = []

    def initial_output(self):
        return OPENING_OUTPUT

    def execute(self, command):
        if command == self.failing_command:
            raise RuntimeError("engine exploded")
        self.turn += 1
        self.executed.append(command)
        return CommandResult(respond(command, self.responses), self.turn)

    def describe_context(self):
        return self.context


def make_fake_engine(**kwargs) -> Callable[[], FakeEngine]:
    return lambda: FakeEngine(**kwargs)


class ScriptedRecorder(GameRecorder):
    """
    Recorder that builds transcripts from the response table.

    Behaves like the reference recorder from the caller's point of view:
    it can be unavailable, stop answering after ``stop_after`` commands,
    fail outright, or block until aborted.
    """

    def __init__(
        self,
        responses: Optional[Dict[str, str]] = None,
        available: bool = True,
        stop_after: Optional[int] = None,
        error: Optional[Exception] = None,
        block_seconds: float = 0.0,
        source: TranscriptSource = TranscriptSource.REFERENCE,
    ):
        self.responses = responses or {}
        self.available = available
        self.stop_after = stop_after
        self.error = error
        self.block_seconds = block_seconds
        self.source = source
        self.calls = []
        self.aborted = threading.Event()

    def is_available(self):
        return self.available

    def abort(self):
        self.aborted.set()

    def record(self, commands: Sequence[str], options: Optional[RecordingOptions] = None) -> Transcript:
        options = options or RecordingOptions()
        self.calls.append((list(commands), options.seed))
        if not self.available:
            raise RecorderUnavailable("scripted recorder disabled")
        if self.error is not None:
            raise self.error
        if self.block_seconds and self.aborted.wait(self.block_seconds):
            raise RecorderTimeout("scripted recorder aborted")

        builder = TranscriptBuilder()
        builder.add("", OPENING_OUTPUT, 0)
        for turn, command in enumerate(commands, start=1):
            if self.stop_after is not None and turn > self.stop_after:
                break
            builder.add(command, respond(command, self.responses), turn)
        return builder.build(
            make_transcript_id("zm", options.seed),
            self.source,
            TranscriptMetadata(seed=options.seed, game_version="scripted"),
        )


FAKE_INTERPRETER_SOURCE = textwrap.dedent(
    '''
    import sys
    import time

    RESPONSES = {
        "look": "West of House\\nYou are standing in an open field west of a white house.",
        "open mailbox": "Opening the small mailbox reveals a leaflet.",
        "inventory": "You are empty-handed.",
    }


    def emit(text):
        sys.stdout.write(text)
        sys.stdout.flush()


    emit("ZORK I: The Great Underground Empire\\n")
    emit("Release 88 / Serial number 840726\\n\\n")
    emit("West of House\\nYou are standing in an open field west of a white house.\\n\\n>")

    while True:
        line = sys.stdin.readline()
        if not line:
            break
        command = line.strip()
        if command == "quit":
            break
        if command == "die":
            emit("You have died.\\n")
            sys.exit(0)
        if command == "hang":
            time.sleep(60)
        emit(RESPONSES.get(command, "I don't know the word \\"%s\\"." % command) + "\\n\\n>")
    '''
)


@pytest.fixture
def fake_engine_factory():
    return make_fake_engine()


@pytest.fixture
def scripted_reference():
    return ScriptedRecorder()


@pytest.fixture
def fake_interpreter(tmp_path):
    """RecorderConfig that runs the fake REPL through the current interpreter."""
    script = tmp_path / "fake_dfrotz.py"
    script.write_text(FAKE_INTERPRETER_SOURCE, encoding="utf-8")
    game_file = tmp_path / "zork1.z3"
    game_file.write_bytes(b"\x03\x00")
    return RecorderConfig(
        interpreter_path=sys.executable,
        game_file_path=str(game_file),
        timeout_ms=5000,
        kill_timeout_ms=1000,
        interpreter_args=("-u", str(script)),
    )


@pytest.fixture(autouse=True)
def clean_parity_env(monkeypatch):
    """Keep developer shell settings out of configuration tests."""
    for name in (
        "ZORK_INTERPRETER_PATH",
        "ZORK_GAME_FILE_PATH",
        "ZORK_RECORDER_TIMEOUT_MS",
        "ZORK_DEFAULT_SEED",
        "PARITY_SEEDS",
        "PARITY_COMMANDS_PER_SEED",
        "PARITY_TIMEOUT_MS",
        "PARITY_BASELINE_PATH",
        "PARITY_ENGINE_FACTORY",
        "PARITY_SLACK_ENABLED",
        "PARITY_METRICS_ENABLED",
        "SLACK_WEBHOOK_URL",
        "SPOT_TEST_COMMAND_COUNT",
        "SPOT_TEST_SEED",
        "SPOT_TEST_TIMEOUT",
        "SPOT_TEST_PASS_THRESHOLD",
        "SPOT_TEST_QUICK_MODE",
        "SPOT_TEST_AVOID_GAME_ENDING",
        "SPOT_TEST_STRICT_VALIDATION",
        "SPOT_TEST_VERBOSE",
        "SPOT_TEST_FOCUS_AREAS",
        "SPOT_TEST_COMMAND_TYPES",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def scripted_recorder_cls():
    return ScriptedRecorder


@pytest.fixture
def engine_factory_builder():
    return make_fake_engine
