"""RPG command tokens and the per-session state machine.

The model signals game mechanics with bracketed tokens embedded in its prose:

  [DICE:<notation>]           roll dice, narration only (no state change)
  [STAT_CHANGE:<stat>:<±int>] change a stat; only "hp" is recognised
  [ITEM:+<name>]              add one <name> to the inventory
  [ITEM:-<name>]              remove every <name> from the inventory

Tokens are matched case-insensitively in three independent passes (dice,
stats, items), each left to right. apply_commands() never mutates the state
it is given; it returns a new state plus the events to show the user.
Persisting the result is the caller's job.
"""

from __future__ import annotations

import logging
import random
import re
from dataclasses import dataclass, field

from rpg_chat import dice
from rpg_chat.models import (
    Character,
    DiceRolled,
    HpChanged,
    ItemGained,
    ItemLost,
    RPGState,
    RpgEvent,
)

logger = logging.getLogger(__name__)

DICE_TOKEN = re.compile(r"\[DICE:(\d+d\d+(?:[+-]\d+)?)\]", re.IGNORECASE)
STAT_TOKEN = re.compile(r"\[STAT_CHANGE:(\w+):([+-]?\d+)\]", re.IGNORECASE)
ITEM_TOKEN = re.compile(r"\[ITEM:([+-])([^\]]+)\]", re.IGNORECASE)


@dataclass
class Commands:
    """Raw token matches found in one message, in text order per kind."""

    dice: list[str] = field(default_factory=list)
    stats: list[tuple[str, int]] = field(default_factory=list)
    items: list[tuple[str, str]] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.dice or self.stats or self.items)


@dataclass
class CommandResult:
    new_state: RPGState
    events: list[RpgEvent]
    changed: bool = False


def extract_commands(text: str) -> Commands:
    """Scan text for command tokens without applying them."""
    commands = Commands()
    for match in DICE_TOKEN.finditer(text):
        commands.dice.append(match.group(1))
    for match in STAT_TOKEN.finditer(text):
        commands.stats.append((match.group(1).lower(), int(match.group(2))))
    for match in ITEM_TOKEN.finditer(text):
        name = match.group(2).strip()
        if name:
            commands.items.append((match.group(1), name))
    return commands


def apply_commands(
    state: RPGState, text: str, rng: random.Random | None = None
) -> CommandResult:
    """Apply every command token in ``text`` to a copy of ``state``.

    When no token matches, the original state object is returned unchanged
    with no events.
    """
    commands = extract_commands(text)
    if not commands:
        return CommandResult(new_state=state, events=[])

    new_state = state.model_copy(deep=True)
    events: list[RpgEvent] = []

    for notation in commands.dice:
        events.append(DiceRolled(result=dice.roll(notation, rng)))

    for stat, change in commands.stats:
        if stat != "hp":
            logger.debug("ignoring unknown stat %r", stat)
            continue
        old_hp = new_state.hp
        new_state.hp = max(0, min(new_state.max_hp, old_hp + change))
        events.append(HpChanged(
            delta=new_state.hp - old_hp, hp=new_state.hp, max_hp=new_state.max_hp,
        ))

    for sign, name in commands.items:
        if sign == "+":
            new_state.inventory.append(name)
            events.append(ItemGained(item=name))
        else:
            kept = [i for i in new_state.inventory if i != name]
            removed = len(new_state.inventory) - len(kept)
            new_state.inventory = kept
            events.append(ItemLost(item=name, count=removed))

    changed = new_state != state
    return CommandResult(
        new_state=new_state if changed else state, events=events, changed=changed,
    )


def new_session_state(character: Character) -> RPGState:
    """Fresh RPG state for a new session with this character."""
    max_hp = character.base_stats.max_hp
    return RPGState(hp=max_hp, max_hp=max_hp)
