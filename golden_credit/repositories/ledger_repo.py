"""
LedgerRepository - MongoDB persistence for the credit ledger.

Collections:
- credit_clients: one row per client, with cached total_debt/bottles_owed
- credit_transactions: append-only debt entries
- credit_payments: append-only payments

Every driver error is surfaced as RemoteFailure so callers never see
pymongo exception types.
"""

from contextlib import asynccontextmanager
from typing import Any, Awaitable, Callable, List, Optional, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError

from golden_credit import log
from golden_credit.core.config import settings
from golden_credit.core.errors import RemoteFailure
from golden_credit.models.ledger import Client, Payment, Transaction


class LedgerRepository:
    """Repository for clients, transactions and payments."""

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        use_transactions: bool = settings.USE_TRANSACTIONS,
        clients_collection: str = settings.CLIENTS_COLLECTION,
        transactions_collection: str = settings.TRANSACTIONS_COLLECTION,
        payments_collection: str = settings.PAYMENTS_COLLECTION,
    ):
        self.db = db
        self.use_transactions = use_transactions
        self.clients = db[clients_collection]
        self.transactions = db[transactions_collection]
        self.payments = db[payments_collection]

    @asynccontextmanager
    async def _remote(self, action: str):
        try:
            yield
        except PyMongoError as exc:
            log.error("MongoDB %s failed: %s", action, exc)
            raise RemoteFailure(f"Could not {action}: {exc}") from exc

    async def run_in_transaction(self, write: Callable[[Any], Awaitable[None]]) -> None:
        """
        Run ``write(session)`` as one unit.

        With transactions enabled the writes commit or abort together;
        otherwise they run sequentially with ``session=None``.
        """
        async with self._remote("commit ledger write"):
            if not self.use_transactions:
                await write(None)
                return
            async with await self.db.client.start_session() as session:
                async with session.start_transaction():
                    await write(session)

    # ===== LOADS =====

    async def load_clients(self) -> List[Client]:
        """All clients ordered by name."""
        async with self._remote("load clients"):
            docs = await self.clients.find().sort("name", ASCENDING).to_list(None)
        return [Client.from_document(doc) for doc in docs]

    async def load_transactions(self) -> List[Transaction]:
        """All transactions, newest first."""
        async with self._remote("load transactions"):
            docs = await self.transactions.find().sort("date", DESCENDING).to_list(None)
        return [Transaction.from_document(doc) for doc in docs]

    async def load_payments(self) -> List[Payment]:
        """All payments, newest first."""
        async with self._remote("load payments"):
            docs = await self.payments.find().sort("date", DESCENDING).to_list(None)
        return [Payment.from_document(doc) for doc in docs]

    async def load_all(self) -> Tuple[List[Client], List[Transaction], List[Payment]]:
        clients = await self.load_clients()
        transactions = await self.load_transactions()
        payments = await self.load_payments()
        return clients, transactions, payments

    # ===== CLIENT WRITES =====

    async def insert_client(self, client: Client, session: Optional[Any] = None) -> None:
        async with self._remote("insert client"):
            await self.clients.insert_one(client.to_document(), session=session)

    async def update_client(self, client: Client, session: Optional[Any] = None) -> None:
        """Overwrite the mutable fields of a client row by id."""
        doc = client.to_document()
        doc.pop("_id")
        doc.pop("created_at")
        async with self._remote("update client"):
            await self.clients.update_one({"_id": client.id}, {"$set": doc}, session=session)

    async def delete_client(self, client_id: str, session: Optional[Any] = None) -> int:
        """Delete a client and its history. Returns the number of rows removed."""
        async with self._remote("delete client"):
            tx_result = await self.transactions.delete_many({"client_id": client_id}, session=session)
            pay_result = await self.payments.delete_many({"client_id": client_id}, session=session)
            client_result = await self.clients.delete_one({"_id": client_id}, session=session)
        return tx_result.deleted_count + pay_result.deleted_count + client_result.deleted_count

    # ===== LOG APPENDS =====

    async def insert_transaction(self, transaction: Transaction, session: Optional[Any] = None) -> None:
        async with self._remote("insert transaction"):
            await self.transactions.insert_one(transaction.to_document(), session=session)

    async def insert_payment(self, payment: Payment, session: Optional[Any] = None) -> None:
        async with self._remote("insert payment"):
            await self.payments.insert_one(payment.to_document(), session=session)
