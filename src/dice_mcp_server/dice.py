from __future__ import annotations

import random
from collections.abc import Sequence
from dataclasses import replace

from .errors import ParseError
from .models import (
    MAX_DICE_COUNT,
    MAX_DICE_SIDES,
    MAX_EXPLOSIONS,
    MAX_OUTCOME_SPACE,
    MAX_RESULT_DIGITS,
    PERCENTILE_SIDES,
    DiceModifiers,
    RollOutcome,
)


_FUDGE_FACES: dict[int, str] = {-1: "[-]", 0: "[ ]", 1: "[+]"}

_NO_MODIFIERS = DiceModifiers()

_MAX_RESULT = 10**MAX_RESULT_DIGITS


def _format_list(values: Sequence[int]) -> str:
    return "[" + ", ".join(str(v) for v in values) + "]"


def _check_count(count: int) -> None:
    if not 1 <= count <= MAX_DICE_COUNT:
        raise ParseError(
            "DICE_COUNT_OUT_OF_RANGE",
            f"Dice count must be between 1 and {MAX_DICE_COUNT} (got {count})",
        )


def check_dice_bounds(count: int, sides: int) -> None:
    _check_count(count)
    if not 1 <= sides <= MAX_DICE_SIDES:
        raise ParseError(
            "DICE_SIDES_OUT_OF_RANGE",
            f"Dice sides must be between 1 and {MAX_DICE_SIDES} (got {sides})",
        )
    if count * sides > MAX_OUTCOME_SPACE:
        raise ParseError(
            "OUTCOME_SPACE_TOO_LARGE",
            f"{count}d{sides} has too many possible outcomes "
            f"(count x sides must not exceed {MAX_OUTCOME_SPACE})",
        )


def render_dice(count: int, sides: int, modifiers: DiceModifiers, negative: bool = False) -> str:
    chunks = [f"{count}d{sides}"]
    if modifiers.keep is not None:
        chunks.append(f"k{modifiers.keep}")
    if modifiers.drop is not None:
        chunks.append(f"d{modifiers.drop}")
    if modifiers.explode:
        chunks.append("!" if modifiers.explode_on is None else f"e{modifiers.explode_on}")
    if modifiers.reroll is not None:
        chunks.append(f"r{modifiers.reroll}")

    text = "".join(chunks)
    return f"-{text}" if negative else text


def _select(values: list[int], modifiers: DiceModifiers) -> list[int] | None:
    # Keep wins over drop when both are present.
    if modifiers.keep is not None:
        return sorted(values, reverse=True)[: modifiers.keep]
    if modifiers.drop is not None:
        return sorted(values)[modifiers.drop :]
    return None


def roll_dice(
    count: int,
    sides: int,
    modifiers: DiceModifiers | None = None,
    *,
    rng: random.Random,
    negative: bool = False,
) -> RollOutcome:
    """Roll ``count`` dice of ``sides`` faces and resolve explode, reroll, keep and drop."""

    check_dice_bounds(count, sides)
    mods = modifiers or _NO_MODIFIERS
    threshold = sides if mods.explode_on is None else mods.explode_on

    rolls: list[int] = []
    values: list[int] = []

    for _ in range(count):
        face = rng.randint(1, sides)
        rolls.append(face)
        value = face

        if mods.explode:
            explosions = 0
            while face >= threshold and explosions < MAX_EXPLOSIONS:
                face = rng.randint(1, sides)
                rolls.append(face)
                value += face
                explosions += 1

        # One fresh face, never rerolled again.
        if mods.reroll is not None and value <= mods.reroll:
            value = rng.randint(1, sides)
            rolls.append(value)

        values.append(value)

    kept = _select(values, mods)
    subtotal = sum(values if kept is None else kept)
    total = -subtotal if negative else subtotal

    breakdown = _format_list(values)
    if kept is not None:
        breakdown += f" → {_format_list(kept)}"
    breakdown += f" = {total}"

    return RollOutcome(
        total=total,
        rolls=tuple(rolls),
        expression=render_dice(count, sides, mods, negative),
        breakdown=breakdown,
    )


def roll_percentile(count: int, *, rng: random.Random, negative: bool = False) -> RollOutcome:
    outcome = roll_dice(count, PERCENTILE_SIDES, rng=rng, negative=negative)
    expression = f"-{count}d%" if negative else f"{count}d%"
    return replace(outcome, expression=expression)


def roll_fudge(count: int, *, rng: random.Random, negative: bool = False) -> RollOutcome:
    """Roll ``count`` Fudge dice, each landing on -1, 0 or +1."""

    _check_count(count)
    faces = [rng.randint(-1, 1) for _ in range(count)]
    subtotal = sum(faces)
    total = -subtotal if negative else subtotal

    glyphs = " ".join(_FUDGE_FACES[face] for face in faces)
    expression = f"{count}dF"

    return RollOutcome(
        total=total,
        rolls=tuple(faces),
        expression=f"-{expression}" if negative else expression,
        breakdown=f"{glyphs} = {total}",
    )


def literal(value: int) -> RollOutcome:
    return RollOutcome(total=value, rolls=(), expression=str(value), breakdown=str(value))


def group(outcome: RollOutcome) -> RollOutcome:
    """Wrap a parenthesized sub-expression; only the rendering changes."""
    return replace(outcome, expression=f"({outcome.expression})")


def _check_result(total: int) -> int:
    if abs(total) >= _MAX_RESULT:
        raise ParseError(
            "RESULT_TOO_LARGE",
            f"Result has more than {MAX_RESULT_DIGITS} digits",
        )
    return total


def add(left: RollOutcome, right: RollOutcome) -> RollOutcome:
    total = _check_result(left.total + right.total)
    return RollOutcome(
        total=total,
        rolls=left.rolls + right.rolls,
        expression=f"{left.expression}+{right.expression}",
        breakdown=f"{left.breakdown} + {right.breakdown} = {total}",
    )


def subtract(left: RollOutcome, right: RollOutcome) -> RollOutcome:
    total = _check_result(left.total - right.total)
    return RollOutcome(
        total=total,
        rolls=left.rolls + right.rolls,
        expression=f"{left.expression}-{right.expression}",
        breakdown=f"{left.breakdown} - {right.breakdown} = {total}",
    )


def multiply(left: RollOutcome, right: RollOutcome) -> RollOutcome:
    total = _check_result(left.total * right.total)
    return RollOutcome(
        total=total,
        rolls=left.rolls + right.rolls,
        expression=f"{left.expression}*{right.expression}",
        breakdown=f"({left.breakdown}) * ({right.breakdown}) = {total}",
    )
