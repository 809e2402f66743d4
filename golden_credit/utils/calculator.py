"""Evaluation of calculator display strings.

The display holds decimal literals and the four binary operators, with
``×`` and ``÷`` shown in place of ``*`` and ``/``. Expressions are parsed
by a small recursive-descent evaluator; display text is never executed.
"""

import re
from decimal import Decimal, DecimalException
from typing import List, Union

CALCULATOR_ERROR = "Error"

DISPLAY_GLYPHS = {"×": "*", "÷": "/"}
OPERATOR_GLYPHS = {"+": "+", "-": "-", "*": "×", "/": "÷"}
RESET_DISPLAYS = ("0", CALCULATOR_ERROR, "Infinity")

_TOKEN = re.compile(r"\s*(?:(?P<number>\d+(?:\.\d*)?|\.\d+)|(?P<op>[+\-*/]))")
_TRAILING_OPERATORS = re.compile(r"[+\-*/×÷]+$")


class _SyntaxError(Exception):
    pass


def normalize_expression(display: str) -> str:
    """Map display glyphs to operators and drop trailing operators."""
    expression = display.strip()
    for glyph, operator in DISPLAY_GLYPHS.items():
        expression = expression.replace(glyph, operator)
    return _TRAILING_OPERATORS.sub("", expression)


def append_operator(display: str, operator: str) -> str:
    """Display after pressing ``operator``.

    Pressing an operator right after another replaces it; pressing one on a
    blank, error or infinite display starts from ``0``.
    """
    glyph = OPERATOR_GLYPHS[DISPLAY_GLYPHS.get(operator, operator)]
    if display in RESET_DISPLAYS:
        return "0" + glyph
    if display and display[-1] in "+-×÷*/":
        return display[:-1] + glyph
    return display + glyph


def _tokenize(expression: str) -> List[str]:
    tokens = []
    position = 0
    while position < len(expression):
        match = _TOKEN.match(expression, position)
        if match is None or match.end() == position:
            if expression[position:].strip():
                raise _SyntaxError(f"Unexpected input at {position}")
            break
        tokens.append(match.group("number") or match.group("op"))
        position = match.end()
    return tokens


class _Parser:
    # expression := term (("+" | "-") term)*
    # term       := factor (("*" | "/") factor)*
    # factor     := ("+" | "-")* NUMBER

    def __init__(self, tokens: List[str]):
        self.tokens = tokens
        self.index = 0

    def _peek(self):
        return self.tokens[self.index] if self.index < len(self.tokens) else None

    def _take(self) -> str:
        token = self._peek()
        if token is None:
            raise _SyntaxError("Unexpected end of expression")
        self.index += 1
        return token

    def parse(self) -> Decimal:
        value = self._expression()
        if self._peek() is not None:
            raise _SyntaxError(f"Unexpected token {self._peek()!r}")
        return value

    def _expression(self) -> Decimal:
        value = self._term()
        while self._peek() in ("+", "-"):
            if self._take() == "+":
                value = value + self._term()
            else:
                value = value - self._term()
        return value

    def _term(self) -> Decimal:
        value = self._factor()
        while self._peek() in ("*", "/"):
            if self._take() == "*":
                value = value * self._factor()
            else:
                value = value / self._factor()
        return value

    def _factor(self) -> Decimal:
        negative = False
        token = self._take()
        while token in ("+", "-"):
            if token == "-":
                negative = not negative
            token = self._take()
        if token in ("*", "/"):
            raise _SyntaxError(f"Operator {token!r} without left operand")
        value = Decimal(token)
        return -value if negative else value


def evaluate(display: str) -> Union[Decimal, str]:
    """Value of ``display``, or ``CALCULATOR_ERROR``.

    Empty input, malformed input, division by zero and non-finite results
    all produce the error sentinel.
    """
    expression = normalize_expression(display)
    if not expression:
        return CALCULATOR_ERROR
    try:
        value = _Parser(_tokenize(expression)).parse()
    except (_SyntaxError, DecimalException):
        return CALCULATOR_ERROR
    if not value.is_finite():
        return CALCULATOR_ERROR
    return value


def format_result(value: Union[Decimal, str]) -> str:
    """Render an evaluation result for the display, without exponent."""
    if isinstance(value, str):
        return value
    text = format(value.normalize(), "f")
    return "0" if text in ("-0", "") else text
