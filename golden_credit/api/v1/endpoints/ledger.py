from fastapi import APIRouter, Depends, status

from golden_credit.api.deps import get_credit_service
from golden_credit.schemas.client import ClientListResponse, ClientResponse
from golden_credit.schemas.ledger import (
    BottleReturn,
    DebtCreate,
    PaymentCreate,
    PaymentResponse,
    SettlementResponse,
    TransactionResponse,
)
from golden_credit.services.credit_service import CreditService

router = APIRouter()


@router.post("/{client_id}/debts", response_model=TransactionResponse, status_code=status.HTTP_201_CREATED)
async def add_debt(
    client_id: str,
    payload: DebtCreate,
    service: CreditService = Depends(get_credit_service)
):
    """Add a debt transaction (zero amounts are audit entries)."""
    transaction = await service.add_debt_transaction(
        client_id, payload.description, payload.amount, infer_bottles=payload.infer_bottles
    )
    return TransactionResponse.model_validate(transaction)


@router.post("/{client_id}/payments", response_model=PaymentResponse, status_code=status.HTTP_201_CREATED)
async def add_payment(
    client_id: str,
    payload: PaymentCreate,
    service: CreditService = Depends(get_credit_service)
):
    """Record a partial payment; it may not exceed the current debt."""
    payment = await service.add_partial_payment(client_id, payload.amount)
    return PaymentResponse.model_validate(payment)


@router.post("/{client_id}/settle", response_model=SettlementResponse)
async def settle(client_id: str, service: CreditService = Depends(get_credit_service)):
    """Pay off the client's whole debt."""
    payment = await service.settle_client(client_id)
    return SettlementResponse(
        client_id=client_id,
        payment=PaymentResponse.model_validate(payment) if payment else None,
        total_debt=service.get_client(client_id).total_debt,
    )


@router.post("/{client_id}/returns", response_model=ClientResponse)
async def return_bottles(
    client_id: str,
    payload: BottleReturn,
    service: CreditService = Depends(get_credit_service)
):
    client = await service.return_bottles(client_id, payload.bottles, record_audit=payload.record_audit)
    return ClientResponse.model_validate(client)


@router.post("/refresh", response_model=ClientListResponse)
async def refresh(service: CreditService = Depends(get_credit_service)):
    """Reload the whole ledger from the remote store."""
    await service.refresh()
    return ClientListResponse(
        clients=[ClientResponse.model_validate(client) for client in service.search_clients()],
        offline=service.offline,
    )
