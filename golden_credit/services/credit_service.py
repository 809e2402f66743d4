"""
CreditService - every user-initiated change to the credit ledger.

Each mutation follows the same shape:
1. Validate against the LedgerStore (DuplicateClient, InvalidAmount,
   NotFound are raised before any remote call)
2. Stage the new records without touching the store
3. Persist them in one repository unit of work, bounded by a timeout
4. Only after the write succeeded, apply the staged records to the store

A failed or timed-out write raises RemoteFailure and leaves the store as it
was. Mutations on the same client are serialized by a per-client lock;
creation, renaming and deletion also hold a registry lock, taken first,
so id allocation and name uniqueness checks never race.
"""

import asyncio
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple, Union

from golden_credit import log
from golden_credit.core.errors import DuplicateClient, InvalidAmount, RemoteFailure
from golden_credit.db.local_store import LocalSnapshotStore
from golden_credit.models.ledger import (
    BottleCategory,
    BottleCounts,
    Client,
    Payment,
    PaymentType,
    Transaction,
    TransactionType,
    empty_bottles,
)
from golden_credit.repositories.ledger_repo import LedgerRepository
from golden_credit.services.ledger_store import LedgerStore
from golden_credit.utils.bottle_parser import (
    add_counts,
    format_return_description,
    infer_bottle_counts,
    is_return_description,
    subtract_counts,
)
from golden_credit.utils.id_allocator import allocate_client_id

BottleInference = Callable[[str], Mapping[BottleCategory, int]]
Write = Callable[[Any], Awaitable[None]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_client_name(name: str) -> str:
    """Title-case each word and collapse whitespace: '  john  DOE ' -> 'John Doe'."""
    return " ".join(word[:1].upper() + word[1:].lower() for word in name.split())


def to_amount(value: Any) -> Decimal:
    """Parse a caller-supplied amount, rejecting non-numeric and non-finite input."""
    if isinstance(value, bool):
        raise InvalidAmount(f"Invalid amount: {value!r}")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidAmount(f"Invalid amount: {value!r}")
    if not amount.is_finite():
        raise InvalidAmount(f"Amount must be finite, got {value!r}")
    return amount


class CreditService:
    def __init__(
        self,
        store: LedgerStore,
        repository: LedgerRepository,
        local_store: Optional[LocalSnapshotStore] = None,
        bottle_inference: Optional[BottleInference] = None,
        settle_resets_bottles: bool = True,
        id_prefix: str = "G",
        id_width: int = 3,
        timeout: float = 10.0,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.repository = repository
        self.local_store = local_store
        self.bottle_inference = bottle_inference
        self.settle_resets_bottles = settle_resets_bottles
        self.id_prefix = id_prefix
        self.id_width = id_width
        self.timeout = timeout
        self.clock = clock
        self.offline = False
        # Called after every load that reached the remote store
        self.on_online: Optional[Callable[[], Any]] = None
        self._registry_lock = asyncio.Lock()
        self._locks: Dict[str, asyncio.Lock] = {}

    # ===== UNIT OF WORK =====

    def _lock_for(self, client_id: str) -> asyncio.Lock:
        lock = self._locks.get(client_id)
        if lock is None:
            lock = self._locks[client_id] = asyncio.Lock()
        return lock

    async def _persist(self, action: str, write: Write) -> None:
        try:
            await asyncio.wait_for(self.repository.run_in_transaction(write), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            log.error("%s timed out after %.1fs", action, self.timeout)
            raise RemoteFailure(f"Could not {action}: timed out after {self.timeout}s") from exc

    async def _commit(self, action: str, write: Write, apply: Callable[[], None]) -> None:
        """Persist staged records, then apply them locally. Nothing is applied on failure."""
        await self._persist(action, write)
        apply()
        self._save_snapshot()

    def _save_snapshot(self) -> None:
        if self.local_store is None:
            return
        try:
            self.local_store.save(*self.store.snapshot())
        except OSError as exc:
            log.warning("Could not write local snapshot %s: %s", self.local_store.path, exc)

    # ===== LOADING =====

    async def load(self) -> None:
        """
        Replace the store with the remote ledger.

        When the remote store cannot be reached the local snapshot is used
        instead and the service is flagged offline.
        """
        try:
            clients, transactions, payments = await asyncio.wait_for(
                self.repository.load_all(), timeout=self.timeout
            )
        except (RemoteFailure, asyncio.TimeoutError) as exc:
            if self.local_store is None:
                if isinstance(exc, RemoteFailure):
                    raise
                raise RemoteFailure(f"Could not load ledger: timed out after {self.timeout}s") from exc
            log.warning("Remote ledger unavailable (%s); loading local snapshot", exc)
            self.store.replace_all(*self.local_store.load())
            self.offline = True
            return

        was_offline = self.offline
        self.store.replace_all(clients, transactions, payments)
        self.offline = False
        self._save_snapshot()
        log.info(
            "Loaded ledger: %d clients, %d transactions, %d payments",
            len(clients), len(transactions), len(payments),
        )
        if was_offline:
            log.info("Remote ledger reachable again")
        if self.on_online is not None:
            self.on_online()

    async def refresh(self) -> None:
        """Reload from the remote store; restarts change notifications when it answers."""
        await self.load()

    # ===== READS =====

    def search_clients(self, query: str = "") -> List[Client]:
        return self.store.search(query)

    def get_client(self, client_id: str) -> Client:
        return self.store.get_client(client_id)

    def get_history(self, client_id: str) -> Tuple[Tuple[Transaction, ...], Tuple[Payment, ...]]:
        self.store.get_client(client_id)
        return self.store.transactions_for(client_id), self.store.payments_for(client_id)

    def outstanding_bottles(self, client_id: str) -> BottleCounts:
        """Bottles still out according to the log, honouring settlement forgiveness."""
        self.store.get_client(client_id)
        since = self.store.last_settlement_at(client_id) if self.settle_resets_bottles else None
        return self.store.outstanding_bottles(client_id, since=since)

    # ===== CLIENTS =====

    async def add_client(self, name: str) -> Client:
        formatted = format_client_name(name)
        if not formatted:
            raise ValueError("Client name must not be empty")

        async with self._registry_lock:
            if self.store.find_client_by_name(formatted) is not None:
                log.info("Rejected duplicate client name %r", formatted)
                raise DuplicateClient(f'Client "{formatted}" already exists')

            client_id = allocate_client_id(self.store.client_ids, self.id_prefix, self.id_width)
            if self.store.has_client(client_id):
                raise DuplicateClient(f'Client with ID "{client_id}" already exists')

            now = self.clock()
            client = Client(id=client_id, name=formatted, created_at=now, last_transaction_at=now)

            async def write(session):
                await self.repository.insert_client(client, session=session)

            await self._commit("add client", write, lambda: self.store.upsert_client(client))

        log.info("Added client %s (%s)", client.id, client.name)
        return client

    async def update_client_name(self, client_id: str, new_name: str) -> Client:
        formatted = format_client_name(new_name)
        if not formatted:
            raise ValueError("Client name must not be empty")

        async with self._registry_lock, self._lock_for(client_id):
            client = self.store.get_client(client_id)
            other = self.store.find_client_by_name(formatted)
            if other is not None and other.id != client_id:
                raise DuplicateClient(f'Client "{formatted}" already exists')

            staged = client.model_copy(update={"name": formatted})

            async def write(session):
                await self.repository.update_client(staged, session=session)

            await self._commit("rename client", write, lambda: self.store.upsert_client(staged))

        log.info("Renamed client %s to %s", client_id, formatted)
        return staged

    async def delete_client(self, client_id: str) -> None:
        """Delete a client with its transactions and payments; its id becomes reusable."""
        async with self._registry_lock:
            async with self._lock_for(client_id):
                self.store.get_client(client_id)

                async def write(session):
                    await self.repository.delete_client(client_id, session=session)

                await self._commit("delete client", write, lambda: self.store.remove_client(client_id))

            self._locks.pop(client_id, None)

        log.info("Deleted client %s", client_id)

    # ===== DEBTS =====

    async def add_debt_transaction(
        self,
        client_id: str,
        description: str,
        amount: Any,
        infer_bottles: Optional[bool] = None,
    ) -> Transaction:
        """
        Append a debt entry and raise the client's total.

        Zero amounts are accepted (audit-only entries). Bottle inference runs
        when ``infer_bottles`` is True, or when it is None and the service was
        built with a ``bottle_inference`` step.
        """
        value = to_amount(amount)
        if value < 0:
            raise InvalidAmount(f"Debt amount must not be negative, got {value}")

        inference = self.bottle_inference
        if infer_bottles is True and inference is None:
            inference = infer_bottle_counts
        elif infer_bottles is False:
            inference = None

        async with self._lock_for(client_id):
            client = self.store.get_client(client_id)
            now = self.clock()
            transaction = Transaction(
                client_id=client_id,
                description=description.strip(),
                amount=value,
                date=now,
                type=TransactionType.DEBT,
            )

            bottles = client.bottles_owed
            if inference is not None and not is_return_description(transaction.description):
                bottles = add_counts(bottles, inference(transaction.description))

            staged = client.model_copy(update={
                "total_debt": client.total_debt + value,
                "bottles_owed": bottles,
                "last_transaction_at": now,
            })

            async def write(session):
                await self.repository.insert_transaction(transaction, session=session)
                await self.repository.update_client(staged, session=session)

            def apply():
                self.store.upsert_transaction(transaction)
                self.store.upsert_client(staged)

            await self._commit("add debt transaction", write, apply)

        log.info("Client %s: debt %s (%r), total now %s", client_id, value, transaction.description, staged.total_debt)
        return transaction

    # ===== PAYMENTS =====

    async def add_partial_payment(self, client_id: str, amount: Any) -> Payment:
        value = to_amount(amount)
        if value <= 0:
            raise InvalidAmount(f"Payment amount must be positive, got {value}")

        async with self._lock_for(client_id):
            client = self.store.get_client(client_id)
            if value > client.total_debt:
                log.info("Rejected payment of %s for %s (debt %s)", value, client_id, client.total_debt)
                raise InvalidAmount(
                    f"Payment of {value} exceeds current debt of {client.total_debt}"
                )

            now = self.clock()
            payment = Payment(client_id=client_id, amount=value, date=now, type=PaymentType.PARTIAL)
            staged = client.model_copy(update={
                "total_debt": client.total_debt - value,
                "last_transaction_at": now,
            })

            async def write(session):
                await self.repository.insert_payment(payment, session=session)
                await self.repository.update_client(staged, session=session)

            def apply():
                self.store.upsert_payment(payment)
                self.store.upsert_client(staged)

            await self._commit("add partial payment", write, apply)

        log.info("Client %s: paid %s, total now %s", client_id, value, staged.total_debt)
        return payment

    async def settle_client(self, client_id: str) -> Optional[Payment]:
        """
        Pay off the whole debt with one ``full`` payment.

        Returns the payment, or None when nothing was owed. Bottle deposits
        are reset as well when ``settle_resets_bottles`` is on; with no
        payment to date the reset, it is logged as return entries instead.
        """
        async with self._lock_for(client_id):
            client = self.store.get_client(client_id)
            now = self.clock()

            payment = None
            if client.total_debt > 0:
                payment = Payment(
                    client_id=client_id, amount=client.total_debt, date=now, type=PaymentType.FULL
                )

            update: Dict[str, Any] = {"total_debt": Decimal("0"), "last_transaction_at": now}
            audits: List[Transaction] = []
            if self.settle_resets_bottles:
                update["bottles_owed"] = empty_bottles()
                if payment is None:
                    # No full payment to date the reset, so log it as returns
                    audits = self._return_audits(client_id, self._bottles_to_forget(client), now)
            staged = client.model_copy(update=update)

            async def write(session):
                if payment is not None:
                    await self.repository.insert_payment(payment, session=session)
                for audit in audits:
                    await self.repository.insert_transaction(audit, session=session)
                await self.repository.update_client(staged, session=session)

            def apply():
                if payment is not None:
                    self.store.upsert_payment(payment)
                for audit in audits:
                    self.store.upsert_transaction(audit)
                self.store.upsert_client(staged)

            await self._commit("settle client", write, apply)

        log.info("Client %s settled (%s)", client_id, payment.amount if payment else "nothing owed")
        return payment

    # ===== BOTTLES =====

    def _bottles_to_forget(self, client: Client) -> BottleCounts:
        """Per-category max of the cached and log-derived counts."""
        derived = self.outstanding_bottles(client.id)
        return {
            category: max(client.bottles_owed.get(category, 0), derived.get(category, 0))
            for category in BottleCategory
        }

    def _return_audits(
        self, client_id: str, quantities: Mapping[BottleCategory, int], date: datetime
    ) -> List[Transaction]:
        """Zero-amount "Returned: <n> <Category>" entries, one per non-zero category."""
        return [
            Transaction(
                client_id=client_id,
                description=format_return_description(quantity, category),
                amount=Decimal("0"),
                date=date,
                type=TransactionType.DEBT,
            )
            for category, quantity in quantities.items()
            if quantity
        ]

    async def return_bottles(
        self,
        client_id: str,
        returned: Mapping[Union[BottleCategory, str], int],
        record_audit: bool = True,
    ) -> Client:
        """
        Record returned bottles.

        Each category goes down by the returned quantity, never below zero.
        With ``record_audit`` a zero-amount "Returned: <n> <Category>" entry
        is appended per category so the log reflects the return.
        """
        quantities: Dict[BottleCategory, int] = {}
        for key, quantity in returned.items():
            category = key if isinstance(key, BottleCategory) else BottleCategory.parse(key)
            if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 0:
                raise InvalidAmount(f"Invalid return quantity for {category.value}: {quantity!r}")
            if quantity:
                quantities[category] = quantities.get(category, 0) + quantity

        async with self._lock_for(client_id):
            client = self.store.get_client(client_id)
            if not quantities:
                return client

            now = self.clock()
            audits = self._return_audits(client_id, quantities, now) if record_audit else []
            staged = client.model_copy(update={
                "bottles_owed": subtract_counts(client.bottles_owed, quantities),
                "last_transaction_at": now,
            })

            async def write(session):
                for audit in audits:
                    await self.repository.insert_transaction(audit, session=session)
                await self.repository.update_client(staged, session=session)

            def apply():
                for audit in audits:
                    self.store.upsert_transaction(audit)
                self.store.upsert_client(staged)

            await self._commit("return bottles", write, apply)

        log.info(
            "Client %s returned %s",
            client_id, ", ".join(f"{qty} {cat.value}" for cat, qty in quantities.items()),
        )
        return staged
