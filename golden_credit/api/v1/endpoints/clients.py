from typing import List

from fastapi import APIRouter, Depends, status

from golden_credit.api.deps import get_credit_service
from golden_credit.schemas.client import (
    BottlesResponse,
    ClientCreate,
    ClientListResponse,
    ClientRename,
    ClientResponse,
)
from golden_credit.schemas.ledger import HistoryResponse, PaymentResponse, TransactionResponse
from golden_credit.services.credit_service import CreditService

router = APIRouter()


@router.post("", response_model=ClientResponse, status_code=status.HTTP_201_CREATED)
async def create_client(payload: ClientCreate, service: CreditService = Depends(get_credit_service)):
    """Create a client with the next free id."""
    client = await service.add_client(payload.name)
    return ClientResponse.model_validate(client)


@router.get("", response_model=ClientListResponse)
async def list_clients(q: str = "", service: CreditService = Depends(get_credit_service)):
    """List clients by name, optionally filtered on name or id."""
    clients = service.search_clients(q)
    return ClientListResponse(
        clients=[ClientResponse.model_validate(client) for client in clients],
        offline=service.offline,
    )


@router.get("/{client_id}", response_model=ClientResponse)
async def get_client(client_id: str, service: CreditService = Depends(get_credit_service)):
    return ClientResponse.model_validate(service.get_client(client_id))


@router.patch("/{client_id}", response_model=ClientResponse)
async def rename_client(
    client_id: str,
    payload: ClientRename,
    service: CreditService = Depends(get_credit_service)
):
    client = await service.update_client_name(client_id, payload.name)
    return ClientResponse.model_validate(client)


@router.delete("/{client_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_client(client_id: str, service: CreditService = Depends(get_credit_service)):
    """Delete a client and its whole history."""
    await service.delete_client(client_id)


@router.get("/{client_id}/history", response_model=HistoryResponse)
async def get_history(client_id: str, service: CreditService = Depends(get_credit_service)):
    transactions, payments = service.get_history(client_id)
    return HistoryResponse(
        client_id=client_id,
        transactions=[TransactionResponse.model_validate(t) for t in transactions],
        payments=[PaymentResponse.model_validate(p) for p in payments],
    )


@router.get("/{client_id}/bottles", response_model=BottlesResponse)
async def get_bottles(client_id: str, service: CreditService = Depends(get_credit_service)):
    client = service.get_client(client_id)
    return BottlesResponse(
        client_id=client_id,
        bottles_owed=client.bottles_owed,
        outstanding_from_log=service.outstanding_bottles(client_id),
    )
