"""Tests for ledger records and their wire/snapshot encoding."""
import json
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from bson.decimal128 import Decimal128
from pydantic import ValidationError

from golden_credit.core.errors import ParseError
from golden_credit.models.ledger import (
    BottleCategory,
    Client,
    Payment,
    PaymentType,
    Transaction,
    decode_bottles,
    empty_bottles,
)


def test_client_defaults():
    client = Client(id="G001", name="John")
    assert client.total_debt == Decimal("0")
    assert client.bottles_owed == empty_bottles()
    assert client.created_at.tzinfo is not None


def test_client_document_uses_wire_types():
    client = Client(id="G001", name="John", total_debt=Decimal("150.50"))
    doc = client.to_document()
    assert doc["_id"] == "G001"
    assert doc["total_debt"] == Decimal128("150.50")
    assert json.loads(doc["bottles_owed"]) == {
        "beer": 0, "guinness": 0, "malta": 0, "coca": 0, "chopine": 0
    }


def test_client_from_document_accepts_decimal128_and_naive_dates():
    doc = {
        "_id": "G002",
        "name": "Jane",
        "total_debt": Decimal128("75.25"),
        "bottles_owed": '{"beer": 2, "chopines": 1}',
        "created_at": datetime(2024, 1, 1, 9, 0),
        "last_transaction_at": datetime(2024, 1, 2, 9, 0),
    }
    client = Client.from_document(doc)
    assert client.total_debt == Decimal("75.25")
    assert client.bottles_owed[BottleCategory.BEER] == 2
    assert client.bottles_owed[BottleCategory.CHOPINE] == 1
    assert client.bottles_owed[BottleCategory.MALTA] == 0
    assert client.created_at.tzinfo == timezone.utc


def test_client_from_document_accepts_native_mapping():
    client = Client.from_document({"id": "G003", "name": "Paul", "total_debt": 10.1, "bottles_owed": {"coca": 3}})
    assert client.total_debt == Decimal("10.1")
    assert client.bottles_owed[BottleCategory.COCA] == 3


@pytest.mark.parametrize("payload", ["{not json", "[1, 2]", '{"beer": -1}', '{"wine": 2}'])
def test_undecodable_bottles_degrade_to_zero(payload):
    client = Client.from_document({"_id": "G004", "name": "Marc", "bottles_owed": payload})
    assert client.bottles_owed == empty_bottles()


def test_decode_bottles_raises_parse_error():
    with pytest.raises(ParseError):
        decode_bottles("{not json")


def test_snapshot_is_json_safe():
    client = Client(id="G001", name="John", total_debt=Decimal("12.30"))
    snapshot = json.loads(json.dumps(client.to_snapshot()))
    restored = Client.from_document(snapshot)
    assert restored == client


def test_records_are_immutable():
    transaction = Transaction(client_id="G001", description="2 Bouteille", amount=Decimal("250"))
    with pytest.raises(ValidationError):
        transaction.amount = Decimal("1")


def test_negative_amounts_are_rejected():
    with pytest.raises(ValidationError):
        Payment(client_id="G001", amount=Decimal("-5"), type=PaymentType.PARTIAL)


def test_generated_ids_are_unique():
    first = Transaction(client_id="G001", amount=Decimal("1"))
    second = Transaction(client_id="G001", amount=Decimal("1"))
    assert first.id != second.id
