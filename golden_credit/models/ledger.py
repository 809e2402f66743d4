"""
Credit ledger records - clients, debt transactions and payments.

Design principles:
- Transactions and payments are append-only; corrections are new entries
  (e.g. a zero-amount "Returned: 2 Chopines" transaction)
- Client.total_debt and Client.bottles_owed are cached aggregates of the log
- Amounts are Decimal in memory and Decimal128 in MongoDB
- bottles_owed is stored as a JSON-encoded string, read back from either a
  string or a native mapping
"""

import json
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from bson.decimal128 import Decimal128
from pydantic import Field, field_validator

from golden_credit import log
from golden_credit.core.errors import ParseError
from golden_credit.models.base import LedgerModel, _utcnow, aware, to_decimal


class BottleCategory(str, Enum):
    """Returnable container categories tracked per client."""

    BEER = "beer"
    GUINNESS = "guinness"
    MALTA = "malta"
    COCA = "coca"
    CHOPINE = "chopine"

    @property
    def label(self) -> str:
        return self.value.capitalize()

    @classmethod
    def parse(cls, name: str) -> "BottleCategory":
        """Resolve a category from its value, label, plural or a synonym."""
        key = name.strip().lower()
        if key in _CATEGORY_SYNONYMS:
            return _CATEGORY_SYNONYMS[key]
        if key.endswith("s") and key[:-1] in _CATEGORY_SYNONYMS:
            return _CATEGORY_SYNONYMS[key[:-1]]
        raise ValueError(f"Unknown bottle category: {name!r}")


_CATEGORY_SYNONYMS: Dict[str, BottleCategory] = {
    "beer": BottleCategory.BEER,
    "bouteille": BottleCategory.BEER,
    "bottle": BottleCategory.BEER,
    "guinness": BottleCategory.GUINNESS,
    "malta": BottleCategory.MALTA,
    "coca": BottleCategory.COCA,
    "chopine": BottleCategory.CHOPINE,
}


BottleCounts = Dict[BottleCategory, int]


def empty_bottles() -> BottleCounts:
    return {category: 0 for category in BottleCategory}


def normalize_bottles(raw: Mapping[Any, Any]) -> BottleCounts:
    """Full, non-negative mapping over every category.

    Accepts enum or string keys (including the legacy ``chopines`` key);
    categories absent from ``raw`` count as 0.
    """
    counts = empty_bottles()
    for key, value in raw.items():
        category = key if isinstance(key, BottleCategory) else BottleCategory.parse(str(key))
        quantity = int(value or 0)
        if quantity < 0:
            raise ValueError(f"Negative bottle count for {category.value}: {quantity}")
        counts[category] += quantity
    return counts


def encode_bottles(counts: Mapping[BottleCategory, int]) -> str:
    return json.dumps({category.value: int(counts.get(category, 0)) for category in BottleCategory})


def decode_bottles(raw: Any) -> BottleCounts:
    """Decode a stored ``bottles_owed`` payload.

    Raises:
        ParseError: payload is not valid JSON, not a mapping, or holds
            unknown categories or invalid counts.
    """
    if raw is None or raw == "":
        return empty_bottles()
    if isinstance(raw, (bytes, str)):
        try:
            raw = json.loads(raw)
        except ValueError as exc:
            raise ParseError(f"bottles_owed is not valid JSON: {exc}") from exc
    if not isinstance(raw, Mapping):
        raise ParseError(f"bottles_owed must be a mapping, got {type(raw).__name__}")
    try:
        return normalize_bottles(raw)
    except (TypeError, ValueError) as exc:
        raise ParseError(f"bottles_owed has invalid content: {exc}") from exc


class TransactionType(str, Enum):
    DEBT = "debt"
    PAYMENT = "payment"


class PaymentType(str, Enum):
    PARTIAL = "partial"
    FULL = "full"


class Client(LedgerModel):
    """
    A person running a tab.

    Invariants:
    - total_debt == max(0, sum(debt transactions) - sum(payments))
    - every bottles_owed entry is >= 0
    """

    name: str
    total_debt: Decimal = Field(default=Decimal("0"), ge=0)
    bottles_owed: BottleCounts = Field(default_factory=empty_bottles)
    created_at: datetime = Field(default_factory=_utcnow)
    last_transaction_at: datetime = Field(default_factory=_utcnow)

    @field_validator("total_debt", mode="before")
    @classmethod
    def _coerce_debt(cls, value: Any) -> Any:
        return to_decimal(value)

    @field_validator("bottles_owed", mode="before")
    @classmethod
    def _coerce_bottles(cls, value: Any) -> Any:
        if value is None:
            return empty_bottles()
        if isinstance(value, Mapping):
            return normalize_bottles(value)
        return value

    @field_validator("created_at", "last_transaction_at")
    @classmethod
    def _aware(cls, value: datetime) -> datetime:
        return aware(value)

    def to_document(self) -> Dict[str, Any]:
        return {
            "_id": self.id,
            "name": self.name,
            "total_debt": Decimal128(str(self.total_debt)),
            "bottles_owed": encode_bottles(self.bottles_owed),
            "created_at": self.created_at,
            "last_transaction_at": self.last_transaction_at,
        }

    def to_snapshot(self) -> Dict[str, Any]:
        doc = self.model_dump(mode="json", by_alias=True)
        doc["bottles_owed"] = encode_bottles(self.bottles_owed)
        return doc

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> "Client":
        """Build a client from a stored row.

        An undecodable ``bottles_owed`` payload is replaced by an all-zero
        mapping so one bad row never aborts a whole load.
        """
        data = dict(doc)
        try:
            data["bottles_owed"] = decode_bottles(data.get("bottles_owed"))
        except ParseError as exc:
            log.warning(
                "Client %s: %s; substituting empty bottle counts",
                data.get("_id", data.get("id")), exc.message,
            )
            data["bottles_owed"] = empty_bottles()
        return cls.model_validate(data)


class Transaction(LedgerModel):
    """Append-only debt record. Zero amounts are audit entries (returns)."""

    client_id: str
    description: str = ""
    amount: Decimal = Field(ge=0)
    date: datetime = Field(default_factory=_utcnow)
    type: TransactionType = TransactionType.DEBT

    @field_validator("amount", mode="before")
    @classmethod
    def _coerce_amount(cls, value: Any) -> Any:
        return to_decimal(value)

    @field_validator("date")
    @classmethod
    def _aware(cls, value: datetime) -> datetime:
        return aware(value)

    def to_document(self) -> Dict[str, Any]:
        return {
            "_id": self.id,
            "client_id": self.client_id,
            "description": self.description,
            "amount": Decimal128(str(self.amount)),
            "date": self.date,
            "type": self.type.value,
        }

    def to_snapshot(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> "Transaction":
        return cls.model_validate(dict(doc))


class Payment(LedgerModel):
    """Append-only payment record; ``full`` payments are settlements."""

    client_id: str
    amount: Decimal = Field(ge=0)
    date: datetime = Field(default_factory=_utcnow)
    type: PaymentType = PaymentType.PARTIAL

    @field_validator("amount", mode="before")
    @classmethod
    def _coerce_amount(cls, value: Any) -> Any:
        return to_decimal(value)

    @field_validator("date")
    @classmethod
    def _aware(cls, value: datetime) -> datetime:
        return aware(value)

    def to_document(self) -> Dict[str, Any]:
        return {
            "_id": self.id,
            "client_id": self.client_id,
            "amount": Decimal128(str(self.amount)),
            "date": self.date,
            "type": self.type.value,
        }

    def to_snapshot(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> "Payment":
        return cls.model_validate(dict(doc))


def find_record_id(doc: Optional[Mapping[str, Any]]) -> Optional[str]:
    """Primary key of a raw row, whichever spelling it uses."""
    if not doc:
        return None
    value = doc.get("_id", doc.get("id"))
    return None if value is None else str(value)
