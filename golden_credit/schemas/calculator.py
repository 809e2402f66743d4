from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class CalculatorRequest(BaseModel):
    expression: str = Field(..., max_length=200)


class CalculatorResponse(BaseModel):
    display: str
    value: Optional[Decimal] = None
    error: bool = False
