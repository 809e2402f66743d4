"""
SyncBridge - merges remote change notifications into the LedgerStore.

Merge rules, per record id:
- INSERT: no-op when the id is already known, insert otherwise
- UPDATE: replace the known record, or insert it when absent
- DELETE: remove by id; unknown ids are ignored

Events carry no ordering; the last event applied for an id wins. There is
no clock-based reconciliation, so two writers editing the same record can
still overwrite each other.
"""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ValidationError

from golden_credit import log
from golden_credit.models.ledger import Client, Payment, Transaction, find_record_id
from golden_credit.services.ledger_store import LedgerStore


class ChangeKind(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class EntityType(str, Enum):
    CLIENT = "clients"
    TRANSACTION = "transactions"
    PAYMENT = "payments"


class ChangeEvent(BaseModel):
    """One notification: ``new`` holds the row after the change, ``old`` before."""

    kind: ChangeKind
    table: EntityType
    new: Optional[Dict[str, Any]] = None
    old: Optional[Dict[str, Any]] = None


class SyncBridge:
    """Applies ChangeEvents to a LedgerStore idempotently."""

    def __init__(self, store: LedgerStore):
        self.store = store

    def apply(self, event: ChangeEvent) -> bool:
        """Merge one event. Returns True when the store changed."""
        if event.kind == ChangeKind.DELETE:
            return self._delete(event)

        if not event.new:
            log.warning("Ignoring %s on %s without a row", event.kind.value, event.table.value)
            return False

        try:
            record = self._decode(event.table, event.new)
        except ValidationError as exc:
            log.warning(
                "Ignoring undecodable %s row %s: %s",
                event.table.value, find_record_id(event.new), exc,
            )
            return False

        if event.kind == ChangeKind.INSERT:
            changed = self._insert(event.table, record)
        else:
            self._upsert(event.table, record)
            changed = True

        log.debug("Applied %s %s %s (changed=%s)", event.kind.value, event.table.value, record.id, changed)
        return changed

    def _decode(self, table: EntityType, row: Dict[str, Any]):
        if table == EntityType.CLIENT:
            return Client.from_document(row)
        if table == EntityType.TRANSACTION:
            return Transaction.from_document(row)
        return Payment.from_document(row)

    def _insert(self, table: EntityType, record) -> bool:
        if table == EntityType.CLIENT:
            return self.store.insert_client(record)
        if table == EntityType.TRANSACTION:
            return self.store.insert_transaction(record)
        return self.store.insert_payment(record)

    def _upsert(self, table: EntityType, record) -> None:
        if table == EntityType.CLIENT:
            self.store.upsert_client(record)
        elif table == EntityType.TRANSACTION:
            self.store.upsert_transaction(record)
        else:
            self.store.upsert_payment(record)

    def _delete(self, event: ChangeEvent) -> bool:
        record_id = find_record_id(event.old) or find_record_id(event.new)
        if record_id is None:
            log.warning("Ignoring DELETE on %s without an id", event.table.value)
            return False
        if event.table == EntityType.CLIENT:
            removed = self.store.remove_client(record_id)
        elif event.table == EntityType.TRANSACTION:
            removed = self.store.remove_transaction(record_id)
        else:
            removed = self.store.remove_payment(record_id)
        log.debug("Applied DELETE %s %s (changed=%s)", event.table.value, record_id, removed)
        return removed
