"""
Bottle quantity inference from free-text transaction descriptions.

Descriptions are typed by hand ("2 Bouteille", "3 chopines + 1 2L",
"Returned: 2 Chopines"), so the recognised vocabulary is a table of
rules evaluated by a single matcher. Text outside the vocabulary yields no
counts; nothing here raises.
"""

import re
from dataclasses import dataclass
from typing import Dict, Iterable, Mapping, Optional, Pattern

from golden_credit.models.ledger import BottleCategory, BottleCounts, empty_bottles


SIZE_QUALIFIER = r"(?:0[.,]5|1[.,]5|2)\s*l\b"

# A quantity must not be the tail of a decimal ("1.5l" never counts 5)
_QTY = r"(?<![\d.,])(?P<qty>\d+)"
_SIZED_QTY = _QTY + r"(?:\s*x\s*|\s+|(?=bouteille|bottle))"
_CONTAINER = r"(?:(?:bouteilles?|bottles?)\s*(?:de\s+)?)?"


@dataclass(frozen=True)
class BottleRule:
    """One entry of the inference table.

    ``pattern`` must expose the counted quantity as the ``qty`` group.
    When it finds nothing and ``implied_when`` occurs in the text (and
    ``implied_unless`` does not), ``implied_quantity`` is counted instead.
    """

    category: BottleCategory
    pattern: Pattern[str]
    implied_when: Optional[Pattern[str]] = None
    implied_unless: Optional[Pattern[str]] = None
    implied_quantity: int = 1


def _rx(expression: str) -> Pattern[str]:
    return re.compile(expression, re.IGNORECASE)


BOTTLE_RULES = (
    BottleRule(
        category=BottleCategory.CHOPINE,
        pattern=_rx(_QTY + r"\s*(?:x\s*)?chopines?\b"),
        implied_when=_rx(r"chopine"),
    ),
    BottleRule(
        category=BottleCategory.MALTA,
        pattern=_rx(_SIZED_QTY + _CONTAINER + r"1[.,]5\s*l\b"),
    ),
    BottleRule(
        category=BottleCategory.COCA,
        pattern=_rx(_SIZED_QTY + _CONTAINER + r"2\s*l\b"),
    ),
    BottleRule(
        category=BottleCategory.GUINNESS,
        pattern=_rx(_SIZED_QTY + _CONTAINER + r"0[.,]5\s*l\b"),
    ),
    BottleRule(
        category=BottleCategory.BEER,
        pattern=_rx(
            _QTY + r"\s*(?:x\s*)?(?:bouteilles?|bottles?)\b"
            r"(?!\s*(?:de\s+)?" + SIZE_QUALIFIER + ")"
        ),
        implied_when=_rx(r"bouteille|bottle"),
        implied_unless=_rx(SIZE_QUALIFIER),
    ),
)

RETURN_MARKER = _rx(r"\breturned\b")
RETURN_PATTERN = _rx(r"\breturned:\s*(?P<qty>\d+)\s+(?P<name>[a-z]+)")


def _apply_rule(rule: BottleRule, text: str) -> int:
    quantities = [int(match.group("qty")) for match in rule.pattern.finditer(text)]
    if quantities:
        return sum(quantities)
    if rule.implied_when is None or not rule.implied_when.search(text):
        return 0
    if rule.implied_unless is not None and rule.implied_unless.search(text):
        return 0
    return rule.implied_quantity


def infer_bottle_counts(description: str, rules: Iterable[BottleRule] = BOTTLE_RULES) -> BottleCounts:
    """Bottles taken according to ``description``.

    Only categories with a positive quantity appear in the result; several
    matches of the same category are summed.

    >>> infer_bottle_counts("2 Bouteille")
    {<BottleCategory.BEER: 'beer'>: 2}
    """
    counts: Dict[BottleCategory, int] = {}
    for rule in rules:
        quantity = _apply_rule(rule, description)
        if quantity:
            counts[rule.category] = counts.get(rule.category, 0) + quantity
    return counts


def is_return_description(description: str) -> bool:
    return bool(RETURN_MARKER.search(description))


def parse_returned_counts(description: str) -> BottleCounts:
    """Quantities recorded by ``Returned: <n> <Category>`` audit entries."""
    counts: Dict[BottleCategory, int] = {}
    for match in RETURN_PATTERN.finditer(description):
        try:
            category = BottleCategory.parse(match.group("name"))
        except ValueError:
            continue
        counts[category] = counts.get(category, 0) + int(match.group("qty"))
    return counts


def format_return_description(quantity: int, category: BottleCategory) -> str:
    suffix = "s" if quantity > 1 and not category.label.endswith("s") else ""
    return f"Returned: {quantity} {category.label}{suffix}"


def add_counts(base: Mapping[BottleCategory, int], extra: Mapping[BottleCategory, int]) -> BottleCounts:
    counts = empty_bottles()
    for category in counts:
        counts[category] = base.get(category, 0) + extra.get(category, 0)
    return counts


def subtract_counts(base: Mapping[BottleCategory, int], returned: Mapping[BottleCategory, int]) -> BottleCounts:
    """Per-category ``base - returned`` clamped at zero."""
    counts = empty_bottles()
    for category in counts:
        counts[category] = max(0, base.get(category, 0) - returned.get(category, 0))
    return counts


def outstanding_bottles(descriptions: Iterable[str]) -> BottleCounts:
    """Net bottles still out: parsed takes minus parsed returns, floored at 0."""
    taken = empty_bottles()
    returned = empty_bottles()
    for description in descriptions:
        if is_return_description(description):
            returned = add_counts(returned, parse_returned_counts(description))
        else:
            taken = add_counts(taken, infer_bottle_counts(description))
    return subtract_counts(taken, returned)
