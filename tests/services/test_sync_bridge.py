from datetime import datetime, timezone
from decimal import Decimal

import pytest

from golden_credit.models.ledger import BottleCategory, Client, Payment, Transaction
from golden_credit.services.ledger_store import LedgerStore
from golden_credit.services.sync_bridge import ChangeEvent, ChangeKind, EntityType, SyncBridge

T0 = datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc)


@pytest.fixture
def bridge(store):
    return SyncBridge(store)


def _client_row(client_id="G001", name="John", debt="0", **extra):
    row = Client(id=client_id, name=name, total_debt=Decimal(debt), created_at=T0, last_transaction_at=T0).to_document()
    row.update(extra)
    return row


def _transaction_row(tx_id="t1", client_id="G001", amount="10"):
    return Transaction(id=tx_id, client_id=client_id, description="pain", amount=Decimal(amount), date=T0).to_document()


def test_insert_is_idempotent(bridge, store):
    event = ChangeEvent(kind=ChangeKind.INSERT, table=EntityType.CLIENT, new=_client_row())
    assert bridge.apply(event) is True
    assert bridge.apply(event) is False
    assert [c.id for c in store.clients] == ["G001"]


def test_insert_does_not_overwrite_known_record(bridge, store):
    bridge.apply(ChangeEvent(kind=ChangeKind.INSERT, table=EntityType.CLIENT, new=_client_row(debt="50")))
    bridge.apply(ChangeEvent(kind=ChangeKind.INSERT, table=EntityType.CLIENT, new=_client_row(debt="99")))
    assert store.total_debt("G001") == Decimal("50")


def test_update_replaces_record(bridge, store):
    bridge.apply(ChangeEvent(kind=ChangeKind.INSERT, table=EntityType.CLIENT, new=_client_row()))
    changed = bridge.apply(ChangeEvent(
        kind=ChangeKind.UPDATE,
        table=EntityType.CLIENT,
        new=_client_row(debt="75", bottles_owed='{"beer": 2}'),
    ))
    assert changed is True
    client = store.get_client("G001")
    assert client.total_debt == Decimal("75")
    assert client.bottles_owed[BottleCategory.BEER] == 2


def test_update_of_unknown_record_inserts_it(bridge, store):
    bridge.apply(ChangeEvent(kind=ChangeKind.UPDATE, table=EntityType.TRANSACTION, new=_transaction_row()))
    assert [t.id for t in store.transactions_for("G001")] == ["t1"]


def test_legacy_bottle_key_is_read(bridge, store):
    bridge.apply(ChangeEvent(
        kind=ChangeKind.INSERT,
        table=EntityType.CLIENT,
        new=_client_row(bottles_owed='{"chopines": 4}'),
    ))
    assert store.bottles_owed("G001")[BottleCategory.CHOPINE] == 4


def test_delete_of_absent_id_is_a_noop(bridge, store):
    changed = bridge.apply(ChangeEvent(kind=ChangeKind.DELETE, table=EntityType.PAYMENT, old={"_id": "nope"}))
    assert changed is False
    assert store.snapshot() == ([], [], [])


def test_delete_client_cascades(bridge, store):
    bridge.apply(ChangeEvent(kind=ChangeKind.INSERT, table=EntityType.CLIENT, new=_client_row()))
    bridge.apply(ChangeEvent(kind=ChangeKind.INSERT, table=EntityType.TRANSACTION, new=_transaction_row()))
    payment = Payment(id="p1", client_id="G001", amount=Decimal("5"), date=T0).to_document()
    bridge.apply(ChangeEvent(kind=ChangeKind.INSERT, table=EntityType.PAYMENT, new=payment))

    assert bridge.apply(ChangeEvent(kind=ChangeKind.DELETE, table=EntityType.CLIENT, old={"_id": "G001"}))
    assert store.snapshot() == ([], [], [])


def test_delete_uses_new_row_id_when_old_missing(bridge, store):
    bridge.apply(ChangeEvent(kind=ChangeKind.INSERT, table=EntityType.TRANSACTION, new=_transaction_row()))
    assert bridge.apply(ChangeEvent(kind=ChangeKind.DELETE, table=EntityType.TRANSACTION, new={"id": "t1"}))
    assert store.transactions_for("G001") == ()


def test_undecodable_row_is_ignored(bridge, store):
    bad = {"_id": "t9", "client_id": "G001", "description": "pain", "amount": "lots", "date": T0}
    assert bridge.apply(ChangeEvent(kind=ChangeKind.INSERT, table=EntityType.TRANSACTION, new=bad)) is False
    assert store.transactions_for("G001") == ()


def test_event_without_row_is_ignored(bridge, store):
    assert bridge.apply(ChangeEvent(kind=ChangeKind.UPDATE, table=EntityType.CLIENT)) is False
