"""Dice formula parsing and evaluation."""

from sidekick.dice.dice_formula import (
    DiceFormulaEvaluator,
    DieGroupResult,
    DieRoll,
    MAX_DICE,
    MAX_DIE_SIZE,
    MAX_EXPLOSIONS,
    MIN_DIE_SIZE,
    RollResult,
    evaluate,
    parse_formula,
    validate_formula,
)
from sidekick.dice.dice_roller import DiceRoller, RandomSource

__all__ = [
    "DiceFormulaEvaluator",
    "DiceRoller",
    "DieGroupResult",
    "DieRoll",
    "MAX_DICE",
    "MAX_DIE_SIZE",
    "MAX_EXPLOSIONS",
    "MIN_DIE_SIZE",
    "RandomSource",
    "RollResult",
    "evaluate",
    "parse_formula",
    "validate_formula",
]
