from fastapi import APIRouter

from golden_credit.schemas.calculator import CalculatorRequest, CalculatorResponse
from golden_credit.utils.calculator import CALCULATOR_ERROR, evaluate, format_result

router = APIRouter()


@router.post("/evaluate", response_model=CalculatorResponse)
async def evaluate_expression(payload: CalculatorRequest):
    """Evaluate a calculator display such as '12×3+4'."""
    result = evaluate(payload.expression)
    if result == CALCULATOR_ERROR:
        return CalculatorResponse(display=CALCULATOR_ERROR, error=True)
    return CalculatorResponse(display=format_result(result), value=result)
