from datetime import datetime
from decimal import Decimal
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from golden_credit.models.ledger import BottleCategory


class ClientCreate(BaseModel):
    """Client creation schema."""
    name: str = Field(..., min_length=1, max_length=100)

    @field_validator("name")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value


class ClientRename(ClientCreate):
    """Client rename schema."""


class ClientResponse(BaseModel):
    """Client response schema."""
    id: str
    name: str
    total_debt: Decimal
    bottles_owed: Dict[BottleCategory, int]
    created_at: datetime
    last_transaction_at: datetime

    model_config = ConfigDict(
        populate_by_name=True,
        from_attributes=True
    )


class BottlesResponse(BaseModel):
    """Cached bottle counts next to the ones derived from the transaction log."""
    client_id: str
    bottles_owed: Dict[BottleCategory, int]
    outstanding_from_log: Dict[BottleCategory, int]


class ClientListResponse(BaseModel):
    clients: List[ClientResponse]
    offline: bool = False
