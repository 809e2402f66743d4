import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from golden_credit.core.errors import RemoteFailure
from golden_credit.models.ledger import Client, Payment, Transaction
from golden_credit.services.credit_service import CreditService
from golden_credit.services.ledger_store import LedgerStore


class FakeLedgerRepository:
    """In-memory stand-in for LedgerRepository.

    Writes inside ``run_in_transaction`` are rolled back when the unit of
    work raises, like an aborted MongoDB transaction.
    """

    def __init__(self):
        self.clients = {}
        self.transactions = {}
        self.payments = {}
        self.fail_with: Optional[Exception] = None
        self.fail_on: Optional[str] = None
        self.load_error: Optional[Exception] = None
        self.delay = 0.0
        self.commits = 0

    def _check(self, operation: str):
        if self.fail_on == operation:
            raise RemoteFailure(f"{operation} failed")

    async def run_in_transaction(self, write):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with is not None:
            raise self.fail_with
        backup = (dict(self.clients), dict(self.transactions), dict(self.payments))
        try:
            await write(None)
        except Exception:
            self.clients, self.transactions, self.payments = backup
            raise
        self.commits += 1

    async def load_all(self):
        if self.load_error is not None:
            raise self.load_error
        if self.delay:
            await asyncio.sleep(self.delay)
        return list(self.clients.values()), list(self.transactions.values()), list(self.payments.values())

    async def insert_client(self, client: Client, session=None):
        self._check("insert_client")
        self.clients[client.id] = client

    async def update_client(self, client: Client, session=None):
        self._check("update_client")
        self.clients[client.id] = client

    async def delete_client(self, client_id: str, session=None):
        self._check("delete_client")
        self.transactions = {k: v for k, v in self.transactions.items() if v.client_id != client_id}
        self.payments = {k: v for k, v in self.payments.items() if v.client_id != client_id}
        self.clients.pop(client_id, None)
        return 1

    async def insert_transaction(self, transaction: Transaction, session=None):
        self._check("insert_transaction")
        self.transactions[transaction.id] = transaction

    async def insert_payment(self, payment: Payment, session=None):
        self._check("insert_payment")
        self.payments[payment.id] = payment


class StepClock:
    """Deterministic clock advancing one minute per reading."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, 8, 0, tzinfo=timezone.utc)):
        self.current = start

    def __call__(self) -> datetime:
        self.current = self.current + timedelta(minutes=1)
        return self.current


@pytest.fixture
def clock():
    return StepClock()


@pytest.fixture
def fake_repo():
    return FakeLedgerRepository()


@pytest.fixture
def store():
    return LedgerStore()


@pytest.fixture
def service(store, fake_repo, clock):
    """CreditService over an empty ledger, no automatic bottle inference."""
    return CreditService(store=store, repository=fake_repo, clock=clock, timeout=1.0)


@pytest.fixture
def mock_db():
    """MagicMock database whose collections are created on first access."""
    db = MagicMock()
    collections = {}

    def collection(name):
        if name not in collections:
            coll = MagicMock()
            coll.insert_one = AsyncMock()
            coll.update_one = AsyncMock()
            coll.delete_one = AsyncMock(return_value=MagicMock(deleted_count=1))
            coll.delete_many = AsyncMock(return_value=MagicMock(deleted_count=0))
            collections[name] = coll
        return collections[name]

    db.__getitem__.side_effect = collection
    db.collections = collections
    return db
