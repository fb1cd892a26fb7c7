from __future__ import annotations

import random
import re
import secrets

import structlog

from .dice import add, group, literal, multiply, roll_dice, roll_fudge, roll_percentile, subtract
from .errors import ParseError
from .models import (
    MAX_EXPRESSION_LENGTH,
    MAX_NESTING_DEPTH,
    MAX_NUMBER,
    DiceModifiers,
    RollOutcome,
)


log = structlog.get_logger()

_WHITESPACE_RE = re.compile(r"\s+")

_DIGITS = frozenset("0123456789")
_MULTIPLY_OPS = frozenset("*×·")
_MAX_NUMBER_DIGITS = len(str(MAX_NUMBER))


def normalize_text(text: str) -> str:
    return _WHITESPACE_RE.sub("", text.lower())


class _Parser:
    """Cursor over one normalized expression; lives for a single ``parse`` call."""

    def __init__(self, text: str, rng: random.Random) -> None:
        self.text = text
        self.pos = 0
        self.depth = 0
        self.rng = rng

    def _peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def parse(self) -> RollOutcome:
        outcome = self._expression()
        if self.pos < len(self.text):
            raise ParseError(
                "UNEXPECTED_CHARACTER", f"Unexpected character '{self._peek()}'", self.pos
            )
        return outcome

    def _expression(self) -> RollOutcome:
        left = self._term()
        while self._peek() in ("+", "-"):
            op = self._peek()
            self.pos += 1
            right = self._term()
            left = add(left, right) if op == "+" else subtract(left, right)
        return left

    def _term(self) -> RollOutcome:
        left = self._factor()
        while self._peek() in _MULTIPLY_OPS:
            self.pos += 1
            left = multiply(left, self._factor())
        return left

    def _factor(self) -> RollOutcome:
        if self._peek() != "(":
            return self._dice_or_number()

        opened_at = self.pos
        self.depth += 1
        if self.depth > MAX_NESTING_DEPTH:
            raise ParseError(
                "NESTING_TOO_DEEP",
                f"Parentheses may be nested at most {MAX_NESTING_DEPTH} levels deep",
                opened_at,
            )
        self.pos += 1

        inner = self._expression()
        if self._peek() != ")":
            raise ParseError(
                "MISSING_CLOSING_PARENTHESIS",
                f"Expected ')' to close '(' opened at position {opened_at}",
                self.pos,
            )
        self.pos += 1
        self.depth -= 1
        return group(inner)

    def _dice_or_number(self) -> RollOutcome:
        start = self.pos
        negative = False
        if self._peek() == "-":
            negative = True
            self.pos += 1

        count: int | None = None
        if self._peek() in _DIGITS:
            count = self._number()

        if self._peek() == "d":
            self.pos += 1
            return self._dice(1 if count is None else count, negative)

        if count is None:
            raise ParseError(
                "EXPECTED_NUMBER_OR_DICE", "Expected a number or dice notation", start
            )
        return literal(-count if negative else count)

    def _dice(self, count: int, negative: bool) -> RollOutcome:
        suffix = self._peek()
        if suffix == "%":
            self.pos += 1
            return roll_percentile(count, rng=self.rng, negative=negative)
        if suffix == "f":
            self.pos += 1
            return roll_fudge(count, rng=self.rng, negative=negative)
        if suffix not in _DIGITS:
            raise ParseError(
                "MISSING_DICE_SIDES", "Expected number of sides, '%' or 'F' after 'd'", self.pos
            )

        sides = self._number()
        modifiers = self._modifiers()
        return roll_dice(count, sides, modifiers, rng=self.rng, negative=negative)

    def _modifiers(self) -> DiceModifiers:
        keep: int | None = None
        drop: int | None = None
        explode = False
        explode_on: int | None = None
        reroll: int | None = None

        while True:
            letter = self._peek()
            if letter == "k":
                self.pos += 1
                keep = self._modifier_value(letter)
            elif letter == "d":
                self.pos += 1
                drop = self._modifier_value(letter)
            elif letter in ("!", "e"):
                self.pos += 1
                explode = True
                if self._peek() in _DIGITS:
                    explode_on = self._number()
            elif letter == "r":
                self.pos += 1
                reroll = self._modifier_value(letter)
            else:
                break

        return DiceModifiers(
            keep=keep, drop=drop, explode=explode, explode_on=explode_on, reroll=reroll
        )

    def _modifier_value(self, letter: str) -> int:
        if self._peek() not in _DIGITS:
            raise ParseError(
                "MISSING_MODIFIER_VALUE", f"Expected a number after '{letter}'", self.pos
            )
        return self._number()

    def _number(self) -> int:
        start = self.pos
        while self._peek() in _DIGITS:
            self.pos += 1

        digits = self.text[start : self.pos]
        if not digits:
            raise ParseError("EXPECTED_NUMBER", "Expected a number", start)
        significant = digits.lstrip("0") or "0"
        if len(significant) > _MAX_NUMBER_DIGITS or int(significant) > MAX_NUMBER:
            raise ParseError(
                "NUMBER_TOO_LARGE", f"Number {significant} exceeds the limit of {MAX_NUMBER}", start
            )
        return int(significant)


def parse(expression: str, rng: random.Random | None = None) -> RollOutcome:
    """Parse and evaluate a dice expression. Raises ParseError for invalid input."""

    normalized = normalize_text(expression)
    if not normalized:
        raise ParseError("EMPTY_EXPRESSION", "Expression is empty. Example: '2d6+3' or 'd20'")
    if len(normalized) > MAX_EXPRESSION_LENGTH:
        raise ParseError(
            "EXPRESSION_TOO_LONG",
            f"Expression is {len(normalized)} characters long (limit {MAX_EXPRESSION_LENGTH})",
        )

    outcome = _Parser(normalized, rng or secrets.SystemRandom()).parse()
    log.debug(
        "dice.parse.ok",
        expression=outcome.expression,
        total=outcome.total,
        roll_count=len(outcome.rolls),
    )
    return outcome
