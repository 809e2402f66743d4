"""
LedgerStore - in-memory aggregate of clients, transactions and payments.

The store is the single shared mutable view of the ledger. Both writer
paths (CreditService for local actions, SyncBridge for remote change
events) go through the same id-keyed primitives:

- insert_*: no-op when the id is already present
- upsert_*: insert or replace by id
- remove_*: delete by id, absent ids are ignored

Reads are synchronous and reflect the latest applied state.
"""

from datetime import datetime
from decimal import Decimal
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from golden_credit.core.errors import NotFound
from golden_credit.models.ledger import (
    BottleCategory,
    BottleCounts,
    Client,
    Payment,
    PaymentType,
    Transaction,
    TransactionType,
)
from golden_credit.utils.bottle_parser import outstanding_bottles


class LedgerStore:
    """Holds the three ledger collections keyed by id."""

    def __init__(self):
        self._clients: Dict[str, Client] = {}
        self._transactions: Dict[str, Transaction] = {}
        self._payments: Dict[str, Payment] = {}

    # ===== BULK =====

    def replace_all(
        self,
        clients: Iterable[Client],
        transactions: Iterable[Transaction],
        payments: Iterable[Payment],
    ) -> None:
        """Swap the whole state, as after a full reload."""
        self._clients = {client.id: client for client in clients}
        self._transactions = {transaction.id: transaction for transaction in transactions}
        self._payments = {payment.id: payment for payment in payments}

    def snapshot(self) -> Tuple[List[Client], List[Transaction], List[Payment]]:
        return (
            list(self._clients.values()),
            list(self._transactions.values()),
            list(self._payments.values()),
        )

    # ===== CLIENT PRIMITIVES =====

    def insert_client(self, client: Client) -> bool:
        if client.id in self._clients:
            return False
        self._clients[client.id] = client
        return True

    def upsert_client(self, client: Client) -> None:
        self._clients[client.id] = client

    def remove_client(self, client_id: str) -> bool:
        """Remove a client together with its transactions and payments."""
        removed = self._clients.pop(client_id, None) is not None
        self._transactions = {
            key: value for key, value in self._transactions.items() if value.client_id != client_id
        }
        self._payments = {
            key: value for key, value in self._payments.items() if value.client_id != client_id
        }
        return removed

    # ===== TRANSACTION PRIMITIVES =====

    def insert_transaction(self, transaction: Transaction) -> bool:
        if transaction.id in self._transactions:
            return False
        self._transactions[transaction.id] = transaction
        return True

    def upsert_transaction(self, transaction: Transaction) -> None:
        self._transactions[transaction.id] = transaction

    def remove_transaction(self, transaction_id: str) -> bool:
        return self._transactions.pop(transaction_id, None) is not None

    # ===== PAYMENT PRIMITIVES =====

    def insert_payment(self, payment: Payment) -> bool:
        if payment.id in self._payments:
            return False
        self._payments[payment.id] = payment
        return True

    def upsert_payment(self, payment: Payment) -> None:
        self._payments[payment.id] = payment

    def remove_payment(self, payment_id: str) -> bool:
        return self._payments.pop(payment_id, None) is not None

    # ===== READS =====

    @property
    def clients(self) -> List[Client]:
        """All clients ordered by name."""
        return sorted(self._clients.values(), key=lambda client: client.name.lower())

    @property
    def client_ids(self) -> List[str]:
        return list(self._clients)

    def has_client(self, client_id: str) -> bool:
        return client_id in self._clients

    def get_client(self, client_id: str) -> Client:
        client = self._clients.get(client_id)
        if client is None:
            raise NotFound(f"Client '{client_id}' not found")
        return client

    def find_client_by_name(self, name: str) -> Optional[Client]:
        """Case-insensitive exact name lookup."""
        wanted = name.lower()
        for client in self._clients.values():
            if client.name.lower() == wanted:
                return client
        return None

    def search(self, query: str) -> List[Client]:
        """Clients whose name or id contains ``query`` (case-insensitive)."""
        needle = query.strip().lower()
        if not needle:
            return self.clients
        return [
            client for client in self.clients
            if needle in client.name.lower() or needle in client.id.lower()
        ]

    def transactions_for(self, client_id: str) -> Tuple[Transaction, ...]:
        """Client transactions, newest first."""
        rows = [t for t in self._transactions.values() if t.client_id == client_id]
        return tuple(sorted(rows, key=lambda t: t.date, reverse=True))

    def payments_for(self, client_id: str) -> Tuple[Payment, ...]:
        """Client payments, newest first."""
        rows = [p for p in self._payments.values() if p.client_id == client_id]
        return tuple(sorted(rows, key=lambda p: p.date, reverse=True))

    # ===== AGGREGATES =====

    def total_debt(self, client_id: str) -> Decimal:
        """Cached debt of the client (0 for unknown ids)."""
        client = self._clients.get(client_id)
        return client.total_debt if client else Decimal("0")

    def bottles_owed(self, client_id: str) -> Mapping[BottleCategory, int]:
        """Cached bottle counts of the client, read-only."""
        client = self._clients.get(client_id)
        counts = dict(client.bottles_owed) if client else {category: 0 for category in BottleCategory}
        return MappingProxyType(counts)

    def computed_total_debt(self, client_id: str) -> Decimal:
        """Debt recomputed from the log: max(0, sum(debts) - sum(payments))."""
        debts = sum(
            (t.amount for t in self._transactions.values()
             if t.client_id == client_id and t.type == TransactionType.DEBT),
            Decimal("0"),
        )
        paid = sum(
            (p.amount for p in self._payments.values() if p.client_id == client_id),
            Decimal("0"),
        )
        return max(Decimal("0"), debts - paid)

    def last_settlement_at(self, client_id: str) -> Optional[datetime]:
        dates = [
            p.date for p in self._payments.values()
            if p.client_id == client_id and p.type == PaymentType.FULL
        ]
        return max(dates) if dates else None

    def outstanding_bottles(self, client_id: str, since: Optional[datetime] = None) -> BottleCounts:
        """Bottles still out according to the transaction log.

        Only debt transactions dated after ``since`` are considered, so a
        forgiving settlement can be expressed as a cut-off date.
        """
        descriptions = [
            t.description for t in self._transactions.values()
            if t.client_id == client_id
            and t.type == TransactionType.DEBT
            and (since is None or t.date > since)
        ]
        return outstanding_bottles(descriptions)
