import pytest

from dice_mcp_server.parser import normalize_text, parse


@pytest.mark.parametrize(
    ("text", "faces", "expression", "total", "rolls", "breakdown"),
    [
        ("2d6", [3, 4], "2d6", 7, (3, 4), "[3, 4] = 7"),
        ("d20", [17], "1d20", 17, (17,), "[17] = 17"),
        ("4d6k3", [5, 3, 2, 6], "4d6k3", 14, (5, 3, 2, 6), "[5, 3, 2, 6] → [6, 5, 3] = 14"),
        ("5d8d2", [1, 8, 4, 2, 7], "5d8d2", 19, (1, 8, 4, 2, 7), "[1, 8, 4, 2, 7] → [4, 7, 8] = 19"),
        ("3d6!", [6, 2, 3, 4], "3d6!", 15, (6, 2, 3, 4), "[8, 3, 4] = 15"),
        ("2d10e8", [9, 8, 1, 5], "2d10e8", 23, (9, 8, 1, 5), "[18, 5] = 23"),
        ("4d6r1", [1, 3, 2, 5, 6], "4d6r1", 16, (1, 3, 2, 5, 6), "[3, 2, 5, 6] = 16"),
        ("d%", [42], "1d%", 42, (42,), "[42] = 42"),
        ("4dF", [-1, 0, 1, 1], "4dF", 1, (-1, 0, 1, 1), "[-] [ ] [+] [+] = 1"),
        ("-2d6", [3, 4], "-2d6", -7, (3, 4), "[3, 4] = -7"),
        ("d20+5", [12], "1d20+5", 17, (12,), "[12] = 12 + 5 = 17"),
        (
            "(2d6+3)*2",
            [2, 5],
            "(2d6+3)*2",
            20,
            (2, 5),
            "([2, 5] = 7 + 3 = 10) * (2) = 20",
        ),
        (
            "2d6 - 1d4",
            [6, 6, 3],
            "2d6-1d4",
            9,
            (6, 6, 3),
            "[6, 6] = 12 - [3] = 3 = 9",
        ),
        # keep wins when keep and drop are both given
        ("4d6k3d1", [5, 3, 2, 6], "4d6k3d1", 14, (5, 3, 2, 6), "[5, 3, 2, 6] → [6, 5, 3] = 14"),
    ],
)
def test_parse_acceptance(scripted, text, faces, expression, total, rolls, breakdown):
    outcome = parse(text, rng=scripted(faces))
    assert outcome.expression == expression
    assert outcome.total == total
    assert outcome.rolls == rolls
    assert outcome.breakdown == breakdown


@pytest.mark.parametrize(
    ("text", "total", "expression"),
    [
        ("7", 7, "7"),
        ("2+3*4", 14, "2+3*4"),
        ("(2+3)*4", 20, "(2+3)*4"),
        ("10-2-3", 5, "10-2-3"),
        ("3×4", 12, "3*4"),
        ("2·3", 6, "2*3"),
        ("5--3", 8, "5--3"),
        ("-4*2", -8, "-4*2"),
        ("1000000", 1_000_000, "1000000"),
        ("(" * 100 + "1" + ")" * 100, 1, "(" * 100 + "1" + ")" * 100),
        ("0" * 5000 + "5", 5, "5"),
        ("+".join(["1"] * 5000), 5000, "+".join(["1"] * 5000)),
    ],
)
def test_parse_arithmetic_has_no_rolls(scripted, text, total, expression):
    outcome = parse(text, rng=scripted([]))
    assert outcome.total == total
    assert outcome.expression == expression
    assert outcome.rolls == ()


def test_normalization_ignores_case_and_whitespace(scripted):
    assert normalize_text("  2 D 6 +\t1 ") == "2d6+1"

    outcome = parse("  2 D 6 +\t1 ", rng=scripted([1, 2]))
    assert outcome.expression == "2d6+1"
    assert outcome.total == 4


def test_uppercase_fudge_notation(scripted):
    outcome = parse("2DF", rng=scripted([1, 1]))
    assert outcome.expression == "2dF"
    assert outcome.total == 2


def test_rolls_concatenate_left_to_right(scripted):
    outcome = parse("1d4 * 1d6 + 1d8", rng=scripted([2, 5, 7]))
    assert outcome.rolls == (2, 5, 7)
    assert outcome.total == 17
