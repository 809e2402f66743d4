from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from golden_credit.models.ledger import BottleCategory, PaymentType, TransactionType


class DebtCreate(BaseModel):
    """Request body to add a debt transaction."""
    description: str = Field(default="", max_length=500)
    amount: Decimal = Field(..., ge=0)
    infer_bottles: Optional[bool] = None


class PaymentCreate(BaseModel):
    """Request body to add a partial payment."""
    amount: Decimal = Field(..., gt=0)


class BottleReturn(BaseModel):
    """Request body to record returned bottles."""
    bottles: Dict[BottleCategory, int]
    record_audit: bool = True


class TransactionResponse(BaseModel):
    id: str
    client_id: str
    description: str
    amount: Decimal
    date: datetime
    type: TransactionType

    model_config = ConfigDict(from_attributes=True)


class PaymentResponse(BaseModel):
    id: str
    client_id: str
    amount: Decimal
    date: datetime
    type: PaymentType

    model_config = ConfigDict(from_attributes=True)


class SettlementResponse(BaseModel):
    client_id: str
    payment: Optional[PaymentResponse] = None
    total_debt: Decimal


class HistoryResponse(BaseModel):
    client_id: str
    transactions: List[TransactionResponse]
    payments: List[PaymentResponse]
