from fastapi import APIRouter
from golden_credit.api.v1.endpoints import calculator, clients, ledger

api_router = APIRouter()

api_router.include_router(clients.router, prefix="/clients", tags=["clients"])
api_router.include_router(ledger.router, prefix="/ledger", tags=["ledger"])
api_router.include_router(calculator.router, prefix="/calculator", tags=["calculator"])
