import uuid
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from bson.decimal128 import Decimal128
from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


def to_decimal(value: Any) -> Any:
    """Coerce wire amounts (Decimal128, float, int, str) into ``Decimal``.

    Floats go through ``str`` so that ``0.1`` stays ``Decimal("0.1")``.
    Anything unrecognised is returned untouched for pydantic to reject.
    """
    if isinstance(value, Decimal128):
        return value.to_decimal()
    if isinstance(value, bool):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, (int, str)):
        try:
            return Decimal(value)
        except InvalidOperation:
            return value
    return value


def aware(value: datetime) -> datetime:
    """Treat naive datetimes coming back from the store as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class LedgerModel(BaseModel):
    """Base for persisted ledger records.

    Records carry their primary key as ``id`` in Python and ``_id`` on the
    wire. Instances are immutable; changes are staged with ``model_copy``.
    """

    id: str = Field(default_factory=_new_id, alias="_id")

    model_config = ConfigDict(
        populate_by_name=True,
        frozen=True,
        from_attributes=True
    )
