import pytest

from dice_mcp_server.errors import ParseError
from dice_mcp_server.parser import parse


@pytest.mark.parametrize(
    ("text", "prefix"),
    [
        ("1001d6", "[DICE_COUNT_OUT_OF_RANGE]"),
        ("0d6", "[DICE_COUNT_OUT_OF_RANGE]"),
        ("1001dF", "[DICE_COUNT_OUT_OF_RANGE]"),
        ("1d10001", "[DICE_SIDES_OUT_OF_RANGE]"),
        ("1d0", "[DICE_SIDES_OUT_OF_RANGE]"),
        ("1000d10000", "[OUTCOME_SPACE_TOO_LARGE]"),
        ("1000000001", "[NUMBER_TOO_LARGE]"),
        ("1000001", "[NUMBER_TOO_LARGE]"),
        ("2d6++", "[EXPECTED_NUMBER_OR_DICE]"),
        ("2d6+", "[EXPECTED_NUMBER_OR_DICE]"),
        ("*3", "[EXPECTED_NUMBER_OR_DICE]"),
        ("2d6 + abc", "[EXPECTED_NUMBER_OR_DICE]"),
        ("()", "[EXPECTED_NUMBER_OR_DICE]"),
        ("2d6)", "[UNEXPECTED_CHARACTER]"),
        ("2d6x", "[UNEXPECTED_CHARACTER]"),
        ("2d6/2", "[UNEXPECTED_CHARACTER]"),
        ("d%k1", "[UNEXPECTED_CHARACTER]"),
        ("4dFk1", "[UNEXPECTED_CHARACTER]"),
        ("(2d6+3", "[MISSING_CLOSING_PARENTHESIS]"),
        ("2d", "[MISSING_DICE_SIDES]"),
        ("2dx", "[MISSING_DICE_SIDES]"),
        ("4d6k", "[MISSING_MODIFIER_VALUE]"),
        ("4d6d", "[MISSING_MODIFIER_VALUE]"),
        ("4d6r", "[MISSING_MODIFIER_VALUE]"),
        ("", "[EMPTY_EXPRESSION]"),
        ("   ", "[EMPTY_EXPRESSION]"),
        ("(" * 101 + "1" + ")" * 101, "[NESTING_TOO_DEEP]"),
        ("*".join(["1000000"] * 800), "[RESULT_TOO_LARGE]"),
        ("-1000000" + "*1000000" * 200, "[RESULT_TOO_LARGE]"),
        ("+".join(["1d6"] * 3000), "[EXPRESSION_TOO_LONG]"),
    ],
)
def test_parse_rejections(text, prefix):
    with pytest.raises(ParseError) as exc:
        parse(text)
    assert str(exc.value).startswith(prefix)


def test_error_reports_position_in_normalized_text():
    with pytest.raises(ParseError) as exc:
        parse("2d6 + +")

    assert exc.value.code == "EXPECTED_NUMBER_OR_DICE"
    assert exc.value.position == 4
    assert str(exc.value).endswith("at position 4")


def test_bound_errors_name_the_bound():
    with pytest.raises(ParseError) as exc:
        parse("1001d6")

    assert "1000" in exc.value.message
    assert exc.value.position is None


def test_parse_error_is_a_value_error():
    with pytest.raises(ValueError):
        parse("2d6++")


def test_result_bound_is_checked_before_rendering():
    text = "*".join(["1000000"] * 800)
    with pytest.raises(ParseError) as exc:
        parse(text)

    assert exc.value.code == "RESULT_TOO_LARGE"
    assert "1000 digits" in exc.value.message


def test_length_is_measured_after_normalization():
    padded = "1" + " " * 20_000
    assert parse(padded).total == 1

    with pytest.raises(ParseError) as exc:
        parse("1" + "+1" * 5000)
    assert exc.value.code == "EXPRESSION_TOO_LONG"
    assert "10001" in exc.value.message
