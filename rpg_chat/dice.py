"""Dice notation parsing and rolling.

Notation is ``<count>d<sides>[<sign><modifier>]``, case-insensitive, e.g.
``2d6+3`` or ``1d20``. A string that does not contain valid notation rolls
nothing: the result keeps the input string, has no rolls and totals 0.
Callers never see an exception for bad notation.
"""

import logging
import random
import re

from rpg_chat.models import DiceResult

logger = logging.getLogger(__name__)

DICE_PATTERN = re.compile(r"(\d+)d(\d+)([+-]\d+)?", re.IGNORECASE)

# Upper bound on dice per roll; larger requests fall back like bad notation
MAX_DICE = 1000


def roll(notation: str, rng: random.Random | None = None) -> DiceResult:
    """Roll dice described by ``notation``.

    Args:
        notation: Dice notation such as "2d6+3".
        rng:      Random source. Defaults to the ``random`` module; tests pass
                  a seeded ``random.Random`` or a stub with ``randint``.
    """
    match = DICE_PATTERN.search(notation)
    if not match:
        logger.debug("no dice notation in %r", notation)
        return DiceResult(dice=notation)

    count = int(match.group(1))
    sides = int(match.group(2))
    modifier = int(match.group(3)) if match.group(3) else 0
    if count < 1 or sides < 1 or count > MAX_DICE:
        logger.debug("dice notation out of range: %r", notation)
        return DiceResult(dice=notation)

    source = rng or random
    rolls = [source.randint(1, sides) for _ in range(count)]
    return DiceResult(
        dice=notation,
        rolls=rolls,
        total=sum(rolls) + modifier,
    )


def format_roll(result: DiceResult) -> str:
    """Render a roll as the chat line posted for manual rolls."""
    rolls = ", ".join(str(r) for r in result.rolls)
    return f"*rolls {result.dice}* 🎲 [{rolls}] = **{result.total}**"
