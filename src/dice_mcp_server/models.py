from __future__ import annotations

from dataclasses import dataclass


MAX_DICE_COUNT = 1000
MAX_DICE_SIDES = 10_000
MAX_OUTCOME_SPACE = 1_000_000
MAX_NUMBER = 1_000_000

# Extra faces a single exploding die may add on top of its first roll.
MAX_EXPLOSIONS = 100

MAX_NESTING_DEPTH = 100

# Counted on the normalized text (lowercased, whitespace stripped).
MAX_EXPRESSION_LENGTH = 10_000

# Combined totals must stay below 10 ** MAX_RESULT_DIGITS in magnitude.
MAX_RESULT_DIGITS = 1000

PERCENTILE_SIDES = 100


@dataclass(frozen=True)
class DiceModifiers:
    keep: int | None = None
    drop: int | None = None
    explode: bool = False
    explode_on: int | None = None
    reroll: int | None = None


@dataclass(frozen=True)
class RollOutcome:
    total: int
    rolls: tuple[int, ...]
    expression: str
    breakdown: str
