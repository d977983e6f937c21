"""
Random command generation for spot tests.

Commands are drawn from weighted templates and filled in from a
GameContext (visible objects, inventory, exits). All randomness comes
from SeededRandom, so a seed fully determines the command sequence.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from src.spot_testing.models import CommandType, GameArea, GameContext, GeneratedCommand
from src.spot_testing.seeded_random import SeededRandom

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 5
STRICT_ATTEMPTS = 2
MAX_COMMAND_LENGTH = 100
MAX_COMMAND_WORDS = 10

FALLBACK_OBJECTS = ["lamp", "sword", "box", "door", "window"]

VALID_DIRECTIONS = frozenset(
    {
        "north", "south", "east", "west", "up", "down",
        "northeast", "northwest", "southeast", "southwest",
        "ne", "nw", "se", "sw", "n", "s", "e", "w", "u", "d",
        "in", "out", "enter", "exit",
    }
)

KNOWN_FIRST_WORDS = frozenset(
    {
        "go", "take", "get", "drop", "put", "open", "close", "examine", "look",
        "read", "inventory", "push", "pull", "turn", "move", "climb", "hello",
        "say", "yell", "attack", "kill", "eat", "drink", "give", "throw",
        "light", "extinguish", "unlock", "lock", "search", "wait",
        "i", "l", "x", "z", "g",
    }
) | VALID_DIRECTIONS

GAME_ENDING_PATTERNS = [
    re.compile(r"^quit\b"),
    re.compile(r"^q$"),
    re.compile(r"^restart\b"),
    re.compile(r"^restore\b"),
    re.compile(r"^kill (me|self|myself)\b"),
    re.compile(r"^suicide\b"),
    re.compile(r"^jump (in|into|off)\b"),
]

OBJECT_NAME_PATTERN = re.compile(r"^[a-zA-Z\s\-']+$")
EXCLUDED_OBJECT_NAMES = frozenset({"undefined", "null", "me", "myself", "you"})
PLACEHOLDER_PATTERN = re.compile(r"\{(DIRECTION|OBJECT|VISIBLE_OBJECT|INVENTORY_OBJECT)\}")

# Command types each area leans towards; focused runs boost these weights
AREA_PREFERENCES: Dict[GameArea, Sequence[CommandType]] = {
    GameArea.HOUSE: (CommandType.EXAMINATION, CommandType.OBJECT_INTERACTION),
    GameArea.FOREST: (CommandType.MOVEMENT, CommandType.EXAMINATION),
    GameArea.UNDERGROUND: (CommandType.EXAMINATION, CommandType.PUZZLE_ACTION),
    GameArea.MAZE: (CommandType.MOVEMENT,),
    GameArea.ENDGAME: (CommandType.PUZZLE_ACTION, CommandType.OBJECT_INTERACTION),
}
AREA_WEIGHT_MULTIPLIER = 1.5


@dataclass(frozen=True)
class ContextRequirement:
    """A precondition on the GameContext for a template to be usable."""

    kind: str  # object_present | inventory_item | flag_set | location_type
    value: str
    required: bool = True


@dataclass(frozen=True)
class CommandTemplate:
    pattern: str
    type: CommandType
    weight: float
    requirements: Sequence[ContextRequirement] = field(default_factory=tuple)


DEFAULT_TEMPLATES: List[CommandTemplate] = [
    CommandTemplate("{DIRECTION}", CommandType.MOVEMENT, 20),
    CommandTemplate("go {DIRECTION}", CommandType.MOVEMENT, 15),
    CommandTemplate("look", CommandType.EXAMINATION, 18),
    CommandTemplate("examine {OBJECT}", CommandType.EXAMINATION, 16),
    CommandTemplate("look at {OBJECT}", CommandType.EXAMINATION, 12),
    CommandTemplate("read {OBJECT}", CommandType.EXAMINATION, 8),
    CommandTemplate("look around", CommandType.EXAMINATION, 12),
    CommandTemplate("take {VISIBLE_OBJECT}", CommandType.OBJECT_INTERACTION, 14),
    CommandTemplate("get {VISIBLE_OBJECT}", CommandType.OBJECT_INTERACTION, 12),
    CommandTemplate("drop {INVENTORY_OBJECT}", CommandType.OBJECT_INTERACTION, 10),
    CommandTemplate(
        "put {INVENTORY_OBJECT} in {VISIBLE_OBJECT}", CommandType.OBJECT_INTERACTION, 8
    ),
    CommandTemplate("open {OBJECT}", CommandType.OBJECT_INTERACTION, 9),
    CommandTemplate("close {OBJECT}", CommandType.OBJECT_INTERACTION, 7),
    CommandTemplate("take all", CommandType.OBJECT_INTERACTION, 8),
    CommandTemplate("drop all", CommandType.OBJECT_INTERACTION, 6),
    CommandTemplate("inventory", CommandType.INVENTORY, 12),
    CommandTemplate("i", CommandType.INVENTORY, 10),
    CommandTemplate("push {OBJECT}", CommandType.PUZZLE_ACTION, 6),
    CommandTemplate("pull {OBJECT}", CommandType.PUZZLE_ACTION, 6),
    CommandTemplate("turn {OBJECT}", CommandType.PUZZLE_ACTION, 5),
    CommandTemplate("move {OBJECT}", CommandType.PUZZLE_ACTION, 5),
    CommandTemplate("climb {OBJECT}", CommandType.PUZZLE_ACTION, 4),
    CommandTemplate(
        "light lamp",
        CommandType.PUZZLE_ACTION,
        4,
        (ContextRequirement("inventory_item", "lamp"),),
    ),
    CommandTemplate(
        "open window",
        CommandType.OBJECT_INTERACTION,
        5,
        (ContextRequirement("location_type", "house"),),
    ),
    CommandTemplate("search", CommandType.PUZZLE_ACTION, 7),
    CommandTemplate("wait", CommandType.PUZZLE_ACTION, 6),
    CommandTemplate("hello", CommandType.COMMUNICATION, 3),
    CommandTemplate("say hello", CommandType.COMMUNICATION, 2),
    CommandTemplate("yell", CommandType.COMMUNICATION, 2),
]


@dataclass
class CommandGenerationConfig:
    command_count: int
    command_types: List[CommandType] = field(default_factory=list)
    focus_areas: List[GameArea] = field(default_factory=list)
    avoid_game_ending: bool = True


def is_game_ending_command(command: str) -> bool:
    lowered = command.strip().lower()
    return any(pattern.search(lowered) for pattern in GAME_ENDING_PATTERNS)


def is_valid_object_name(name: str) -> bool:
    if not name or len(name) > 50:
        return False
    if not OBJECT_NAME_PATTERN.match(name):
        return False
    return name.lower() not in EXCLUDED_OBJECT_NAMES


def generate_seed_from_string(name: str) -> int:
    """Stable seed for a named scenario (31-bit string hash, mod 1000000)."""
    value = 0
    for char in name:
        value = ((value << 5) - value + ord(char)) & 0xFFFFFFFF
    # interpret as signed 32-bit, then fold to a non-negative 31-bit value
    if value & 0x80000000:
        value -= 1 << 32
    return abs(value) % 1000000


class RandomCommandGenerator:
    """Generates contextually plausible commands from weighted templates."""

    def __init__(
        self,
        seed: int,
        templates: Optional[Sequence[CommandTemplate]] = None,
    ) -> None:
        self.seed = seed
        self.rng = SeededRandom(seed)
        self.templates = list(templates) if templates is not None else list(DEFAULT_TEMPLATES)

    def generate_commands(
        self, config: CommandGenerationConfig, context: Optional[GameContext] = None
    ) -> List[GeneratedCommand]:
        """
        Generate up to ``config.command_count`` commands.

        Slots where no acceptable command is found in five attempts are
        skipped, so the result can be shorter than requested.
        """
        context = context or GameContext()
        commands: List[GeneratedCommand] = []

        for _ in range(config.command_count):
            generated = self._generate_single(config, context)
            if generated is not None:
                commands.append(generated)

        if len(commands) < config.command_count:
            logger.debug(
                f"Seed {self.seed}: generated {len(commands)} of {config.command_count} commands"
            )
        return commands

    def _generate_single(
        self, config: CommandGenerationConfig, context: GameContext
    ) -> Optional[GeneratedCommand]:
        candidates = self.templates
        if config.command_types:
            candidates = [t for t in candidates if t.type in config.command_types]

        for attempt in range(MAX_ATTEMPTS):
            strict = attempt < STRICT_ATTEMPTS
            usable = [t for t in candidates if self.meets_requirements(t, context, strict)]
            if not usable:
                continue

            template, weight = self._select_weighted(usable, config.focus_areas)
            command = self._fill_template(template, context, strict)
            if command is None:
                continue
            if config.avoid_game_ending and is_game_ending_command(command):
                continue

            return GeneratedCommand(command=command, expected_type=template.type, weight=weight)

        return None

    @staticmethod
    def meets_requirements(
        template: CommandTemplate, context: GameContext, strict: bool = True
    ) -> bool:
        visible = [o.lower() for o in context.visible_objects]
        inventory = [o.lower() for o in context.inventory]

        for req in template.requirements:
            if not req.required:
                continue
            value = req.value.lower()
            if req.kind == "object_present":
                if value not in visible and value not in inventory:
                    return False
            elif req.kind == "inventory_item":
                if value not in inventory and (strict or not inventory):
                    return False
            elif req.kind == "flag_set":
                if context.flags.get(req.value) is not True:
                    return False
            elif req.kind == "location_type":
                if value not in context.current_location.lower():
                    return False
        return True

    def _weight(self, template: CommandTemplate, focus_areas: Sequence[GameArea]) -> float:
        weight = float(template.weight)
        for area in focus_areas:
            if template.type in AREA_PREFERENCES.get(area, ()):
                weight *= AREA_WEIGHT_MULTIPLIER
                break
        return weight

    def _select_weighted(self, templates: Sequence[CommandTemplate], focus_areas):
        weights = [self._weight(t, focus_areas) for t in templates]
        remaining = self.rng.next() * sum(weights)
        for template, weight in zip(templates, weights):
            remaining -= weight
            if remaining <= 0:
                return template, weight
        return templates[-1], weights[-1]

    def _pick_object(self, pool: List[str], strict: bool) -> Optional[str]:
        if not pool and not strict:
            pool = FALLBACK_OBJECTS
        if not pool:
            return None
        name = self.rng.choice(pool)
        return name if is_valid_object_name(name) else None

    def _pick_direction(self, context: GameContext) -> Optional[str]:
        if not context.available_directions:
            return None
        direction = self.rng.choice(context.available_directions).lower()
        return direction if direction in VALID_DIRECTIONS else None

    def _fill_template(
        self, template: CommandTemplate, context: GameContext, strict: bool
    ) -> Optional[str]:
        visible = [o.lower() for o in context.visible_objects]
        inventory = [o.lower() for o in context.inventory]
        failed = False

        def substitute(match: "re.Match[str]") -> str:
            nonlocal failed
            placeholder = match.group(1)
            if placeholder == "DIRECTION":
                value = self._pick_direction(context)
            elif placeholder == "VISIBLE_OBJECT":
                value = self._pick_object(visible, strict)
            elif placeholder == "INVENTORY_OBJECT":
                value = self._pick_object(inventory, strict)
            else:
                value = self._pick_object(visible + inventory, strict)
            if value is None:
                failed = True
                return ""
            return value

        command = PLACEHOLDER_PATTERN.sub(substitute, template.pattern).strip()
        if failed or not command:
            return None
        if not self.is_well_formed(command, context, strict):
            return None
        return command

    @staticmethod
    def is_well_formed(command: str, context: GameContext, strict: bool = True) -> bool:
        if len(command) > MAX_COMMAND_LENGTH:
            return False
        words = command.lower().split()
        if not words or len(words) > MAX_COMMAND_WORDS:
            return False
        if words[0] not in KNOWN_FIRST_WORDS:
            return False

        if strict:
            is_movement = words[0] == "go" or (len(words) == 1 and words[0] in VALID_DIRECTIONS)
            exits = [d.lower() for d in context.available_directions]
            if is_movement:
                target = words[-1]
                if target in VALID_DIRECTIONS and target not in exits:
                    return False
        return True


def validate_reproducibility(
    seed: int,
    runs: int = 3,
    command_count: int = 20,
    context: Optional[GameContext] = None,
) -> bool:
    """True when ``runs`` independent generators with ``seed`` agree exactly."""
    config = CommandGenerationConfig(command_count=command_count)
    sequences = [
        [c.command for c in RandomCommandGenerator(seed).generate_commands(config, context)]
        for _ in range(max(runs, 1))
    ]
    return all(sequence == sequences[0] for sequence in sequences)
