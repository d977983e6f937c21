#!/usr/bin/env python3
"""
Record a transcript from the model engine or the reference interpreter.

Commands come from a text file (one per line, '#' starts a comment) or
from a seeded command generator.

Usage:
    python scripts/record_transcript.py --source reference --commands-file walk.txt -o out.json
    python scripts/record_transcript.py --source model --engine pkg.mod:make_engine --generate 50 --seed 42 -o out.json
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from src.config.settings import create_default_recorder_config, load_engine_factory
from src.recording.exceptions import RecorderError
from src.recording.model_recorder import ModelRecorder
from src.recording.models import RecordingOptions
from src.recording.persistence import save_transcript
from src.recording.reference_recorder import ReferenceRecorder
from src.regression.gate import exit_code_for
from src.spot_testing.command_generator import CommandGenerationConfig, RandomCommandGenerator

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def read_commands(path: Path) -> List[str]:
    commands = []
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            commands.append(line)
    return commands


def main() -> int:
    parser = argparse.ArgumentParser(description="Record a game transcript")
    parser.add_argument("--source", choices=("model", "reference"), required=True)
    parser.add_argument("--engine", help="Model engine factory as module:callable")
    commands_group = parser.add_mutually_exclusive_group(required=True)
    commands_group.add_argument("--commands-file", type=Path, help="One command per line")
    commands_group.add_argument("--generate", type=int, help="Generate N seeded commands")
    parser.add_argument("--seed", type=int, default=12345)
    parser.add_argument("-o", "--output", type=Path, required=True, help="Transcript JSON path")
    args = parser.parse_args()

    if args.commands_file:
        commands = read_commands(args.commands_file)
    else:
        generated = RandomCommandGenerator(args.seed).generate_commands(
            CommandGenerationConfig(command_count=args.generate)
        )
        commands = [g.command for g in generated]
    logger.info(f"Recording {len(commands)} commands on the {args.source} implementation")

    try:
        if args.source == "model":
            recorder = ModelRecorder(load_engine_factory(args.engine))
        else:
            recorder = ReferenceRecorder(create_default_recorder_config())
        transcript = recorder.record(commands, RecordingOptions(seed=args.seed))
    except RecorderError as e:
        logger.error(f"Recording failed: {e}")
        return exit_code_for(e)

    save_transcript(transcript, args.output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
