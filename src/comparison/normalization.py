"""
Output normalization pipeline.

Pure text transforms that reconcile the reference interpreter's output
format (banner, status line, prompt, hard wrapping at 80 columns) with
the model engine's before any similarity is computed.

The transforms run in a fixed order:
header -> status bar -> prompt -> room description -> whitespace.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from src.comparison.models import ComparisonOptions

PROMPT_MARKER = ">"

HEADER_PATTERNS = [
    re.compile(r"ZORK I:"),
    re.compile(r"^The Great Underground Empire"),
    re.compile(r"Copyright.*Infocom", re.IGNORECASE),
    re.compile(r"^All rights reserved", re.IGNORECASE),
    re.compile(r"ZORK is a registered trademark"),
    re.compile(r"^Release\s+\d+"),
    re.compile(r"^Serial number", re.IGNORECASE),
    re.compile(r"^Revision\s+\d+"),
    re.compile(r"interactive fiction", re.IGNORECASE),
    re.compile(r"^Loading"),
    re.compile(r"^Using normal formatting"),
    re.compile(r"fantasy story", re.IGNORECASE),
]

STATUS_BAR_PATTERN = re.compile(
    r"^\s*\S.*\s+Score:\s*-?\d+\s+Moves:\s*\d+\s*$", re.IGNORECASE
)
PROMPT_LINE_PATTERN = re.compile(r"^>\s*$")
TERMINAL_PUNCTUATION = re.compile(r"[.!?\"]$")
HORIZONTAL_WHITESPACE = re.compile(r"[ \t\f\v]+")

MOVEMENT_COMMANDS = frozenset(
    {
        "n", "north", "s", "south", "e", "east", "w", "west",
        "u", "up", "d", "down",
        "ne", "northeast", "nw", "northwest", "se", "southeast", "sw", "southwest",
        "in", "enter", "out", "exit",
        "land", "climb", "cross", "launch",
    }
)


def is_header_line(line: str) -> bool:
    stripped = line.strip()
    return any(pattern.search(stripped) for pattern in HEADER_PATTERNS)


def strip_game_header(output: str) -> str:
    """
    Remove banner lines shown before the first real content line.

    Blank lines inside the banner are dropped too; everything from the
    first non-banner line onwards is returned untouched.
    """
    lines = output.split("\n")
    for position, line in enumerate(lines):
        if line.strip() == "" or is_header_line(line):
            continue
        return "\n".join(lines[position:])
    return ""


def strip_status_bar(output: str) -> str:
    """Remove the interpreter's ``<room>  Score: N  Moves: N`` status lines."""
    return "\n".join(
        line for line in output.split("\n") if not STATUS_BAR_PATTERN.match(line)
    )


def strip_prompt(output: str) -> str:
    """
    Remove lines consisting solely of the prompt marker.

    A ``>`` embedded in other text is left alone.
    """
    return "\n".join(
        line for line in output.split("\n") if not PROMPT_LINE_PATTERN.match(line)
    )


def normalize_line_wrapping(output: str) -> str:
    """
    Undo hard wrapping by re-joining lines into paragraphs.

    Blank lines are paragraph breaks and are preserved. A line is joined
    to the accumulated one with a single space unless the accumulated
    line already ends a sentence (``.``, ``!``, ``?`` or a closing quote).
    """
    result: List[str] = []
    current = ""

    for line in output.split("\n"):
        trimmed = line.strip()

        if trimmed == "":
            if current:
                result.append(current)
                current = ""
            result.append("")
            continue

        if not current:
            current = trimmed
        elif TERMINAL_PUNCTUATION.search(current):
            result.append(current)
            current = trimmed
        else:
            current = f"{current} {trimmed}"

    if current:
        result.append(current)

    return "\n".join(result)


def normalize_output(output: str) -> str:
    """
    Canonicalize whitespace.

    Unifies line endings, collapses horizontal whitespace runs, trims each
    line, collapses blank-line runs to one and trims the block. Idempotent.
    """
    text = output.replace("\r\n", "\n").replace("\r", "\n")

    lines: List[str] = []
    previous_blank = False
    for line in text.split("\n"):
        cleaned = HORIZONTAL_WHITESPACE.sub(" ", line).strip()
        if cleaned == "":
            if previous_blank:
                continue
            previous_blank = True
        else:
            previous_blank = False
        lines.append(cleaned)

    return "\n".join(lines).strip()


def is_movement_command(command: str) -> bool:
    words = command.strip().lower().split()
    if not words:
        return False
    if words[0] in ("go", "walk") and len(words) > 1:
        return True
    return words[0] in MOVEMENT_COMMANDS


def is_room_name_line(line: str) -> bool:
    """
    Heuristic for a room title such as ``West of House``.

    Short, no terminal punctuation, starts with a capital letter and at
    least half of its words are capitalized.
    """
    trimmed = line.strip()
    if not trimmed or len(trimmed) > 50:
        return False
    if re.search(r"[.!?,:;\"]$", trimmed):
        return False
    if not trimmed[0].isupper():
        return False

    words = trimmed.split()
    capitalized = sum(1 for word in words if word[0].isupper())
    return capitalized >= len(words) / 2


def split_room_block(output: str) -> Tuple[Optional[str], str]:
    """
    Split off a leading room block (title line plus prose up to the first blank line).

    Returns ``(block, remainder)``; ``block`` is None when the output does
    not start with a room title or when nothing follows the block.
    """
    lines = output.split("\n")

    start = 0
    while start < len(lines) and lines[start].strip() == "":
        start += 1
    if start >= len(lines) or not is_room_name_line(lines[start]):
        return None, output

    position = start + 1
    while position < len(lines) and lines[position].strip() != "":
        position += 1

    remainder = "\n".join(lines[position:])
    if not remainder.strip():
        # A bare room block is the whole response (e.g. "look").
        return None, output
    return "\n".join(lines[start:position]), remainder


def strip_room_description(output: str) -> str:
    """Drop a leading room block; output without one is returned unchanged."""
    return split_room_block(output)[1]


@dataclass(frozen=True)
class ActionResponse:
    """Output split into the action's own response and any room block."""

    response: str
    room_description: Optional[str]
    is_movement: bool
    original_output: str


def extract_action_response(output: str, command: str) -> ActionResponse:
    cleaned = normalize_output(strip_prompt(strip_status_bar(output)))

    if is_movement_command(command):
        return ActionResponse(cleaned, None, True, output)

    block, remainder = split_room_block(cleaned)
    return ActionResponse(normalize_output(remainder), block, False, output)


class NormalizationPipeline:
    """Applies the transforms in their fixed order, honoring ComparisonOptions."""

    def __init__(self, options: Optional[ComparisonOptions] = None) -> None:
        self.options = options or ComparisonOptions()

    def normalize(self, output: str, command: str = "") -> str:
        text = output.replace("\r\n", "\n").replace("\r", "\n")

        if self.options.strip_game_header:
            text = strip_game_header(text)
        if self.options.strip_status_bar:
            text = strip_status_bar(text)
        text = strip_prompt(text)
        if command and not is_movement_command(command):
            text = strip_room_description(text)
        if self.options.normalize_line_wrapping:
            text = normalize_line_wrapping(text)
        if self.options.normalize_whitespace:
            text = normalize_output(text)

        return text
