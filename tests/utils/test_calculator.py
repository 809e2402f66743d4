"""Tests for the calculator evaluator."""
from decimal import Decimal

import pytest

from golden_credit.utils.calculator import (
    CALCULATOR_ERROR,
    append_operator,
    evaluate,
    format_result,
    normalize_expression,
)


@pytest.mark.parametrize(
    "display, expected",
    [
        ("12", Decimal("12")),
        ("2+3", Decimal("5")),
        ("2+3×4", Decimal("14")),
        ("10÷4", Decimal("2.5")),
        ("0.1+0.2", Decimal("0.3")),
        ("100-25-25", Decimal("50")),
        ("8÷2÷2", Decimal("2")),
        ("-5+2", Decimal("-3")),
        ("3*-2", Decimal("-6")),
    ],
)
def test_evaluates(display, expected):
    assert evaluate(display) == expected


def test_trailing_operators_are_dropped():
    assert normalize_expression("12+3×") == "12+3"
    assert evaluate("12+3×") == Decimal("15")


@pytest.mark.parametrize("display", ["", "×", "5÷0", "0÷0", "2+abc", "1.2.3", "×5", "2**3"])
def test_errors_return_sentinel(display):
    assert evaluate(display) == CALCULATOR_ERROR


def test_never_executes_code():
    assert evaluate("__import__('os')") == CALCULATOR_ERROR


class TestAppendOperator:
    def test_appends_display_glyph(self):
        assert append_operator("12", "*") == "12×"
        assert append_operator("12", "/") == "12÷"
        assert append_operator("12", "+") == "12+"

    def test_replaces_previous_operator(self):
        assert append_operator("12+", "-") == "12-"
        assert append_operator("12×", "/") == "12÷"

    def test_starts_from_zero_after_error(self):
        assert append_operator(CALCULATOR_ERROR, "+") == "0+"
        assert append_operator("0", "*") == "0×"


def test_format_result():
    assert format_result(Decimal("2.50")) == "2.5"
    assert format_result(Decimal("100")) == "100"
    assert format_result(Decimal("-0")) == "0"
    assert format_result(CALCULATOR_ERROR) == CALCULATOR_ERROR


def test_long_runs_of_signs_fold():
    assert evaluate("-" * 2000 + "1") == Decimal("1")
    assert evaluate("2×" + "-" * 2001 + "3") == Decimal("-6")
