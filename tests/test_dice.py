"""Tests for rpg_chat.dice."""

import random

import pytest

from rpg_chat import dice
from rpg_chat.models import DiceResult

from helpers import FixedRng


class TestRoll:
    def test_fixed_outcomes_with_modifier(self) -> None:
        result = dice.roll("2d6+3", FixedRng([4, 2]))
        assert result.rolls == [4, 2]
        assert result.total == 9
        assert result.dice == "2d6+3"

    def test_negative_modifier(self) -> None:
        result = dice.roll("1d20-2", FixedRng([15]))
        assert result.total == 13

    def test_no_modifier(self) -> None:
        result = dice.roll("3d4", FixedRng([1, 2, 3]))
        assert result.total == 6

    def test_case_insensitive(self) -> None:
        result = dice.roll("2D8", FixedRng([8, 1]))
        assert result.rolls == [8, 1]

    def test_draws_within_inclusive_range(self) -> None:
        rng = FixedRng([6, 6])
        dice.roll("2d6", rng)
        assert rng.calls == [(1, 6), (1, 6)]

    @pytest.mark.parametrize("count", [1, 2, 5])
    @pytest.mark.parametrize("sides", [4, 6, 20, 100])
    @pytest.mark.parametrize("modifier", ["", "+5", "-3"])
    def test_roll_shape_and_total(self, count: int, sides: int, modifier: str) -> None:
        rng = random.Random(count * 1000 + sides)
        result = dice.roll(f"{count}d{sides}{modifier}", rng)
        assert len(result.rolls) == count
        assert all(1 <= r <= sides for r in result.rolls)
        expected_mod = int(modifier) if modifier else 0
        assert result.total == sum(result.rolls) + expected_mod

    def test_notation_found_inside_text(self) -> None:
        result = dice.roll("roll 1d20 for me", FixedRng([11]))
        assert result.rolls == [11]
        assert result.dice == "roll 1d20 for me"

    @pytest.mark.parametrize("notation", ["banana", "", "d20", "2d", "0d6", "3d0", "5000d6"])
    def test_invalid_notation_falls_back(self, notation: str) -> None:
        result = dice.roll(notation)
        assert result == DiceResult(dice=notation, rolls=[], total=0)

    def test_bad_notation_dumps_exact_shape(self) -> None:
        assert dice.roll("banana").model_dump() == {"dice": "banana", "rolls": [], "total": 0}

    def test_dice_count_bound(self) -> None:
        assert dice.MAX_DICE == 1000
        at_bound = dice.roll("1000d1")
        assert len(at_bound.rolls) == 1000
        assert at_bound.total == 1000
        over = dice.roll("1001d1")
        assert over.rolls == []
        assert over.total == 0

    def test_default_rng_is_random_module(self) -> None:
        random.seed(7)
        first = dice.roll("4d6")
        random.seed(7)
        second = dice.roll("4d6")
        assert first.rolls == second.rolls


class TestFormatRoll:
    def test_chat_line(self) -> None:
        result = DiceResult(dice="2d6+3", rolls=[4, 2], total=9)
        assert dice.format_roll(result) == "*rolls 2d6+3* 🎲 [4, 2] = **9**"

    def test_empty_roll(self) -> None:
        assert dice.format_roll(DiceResult(dice="nope")) == "*rolls nope* 🎲 [] = **0**"
