"""Local fallback copy of the ledger, used when MongoDB is unreachable."""

import json
import os
import tempfile
from pathlib import Path
from typing import Iterable, List, Tuple, Union

from golden_credit import log
from golden_credit.models.ledger import Client, Payment, Transaction


class LocalSnapshotStore:
    """
    JSON file holding the three ledger collections.

    Layout: ``{"clients": [...], "transactions": [...], "payments": [...]}``
    with ISO-8601 dates, string amounts and JSON-encoded ``bottles_owed``.
    The file is replaced atomically on every save.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def save(
        self,
        clients: Iterable[Client],
        transactions: Iterable[Transaction],
        payments: Iterable[Payment],
    ) -> None:
        payload = {
            "clients": [client.to_snapshot() for client in clients],
            "transactions": [transaction.to_snapshot() for transaction in transactions],
            "payments": [payment.to_snapshot() for payment in payments],
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".snapshot-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, ensure_ascii=False, indent=2)
            os.replace(tmp_name, self.path)
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def load(self) -> Tuple[List[Client], List[Transaction], List[Payment]]:
        """Read the snapshot. A missing file is an empty ledger."""
        if not self.path.exists():
            log.warning("No local snapshot at %s; starting empty", self.path)
            return [], [], []

        with self.path.open(encoding="utf-8") as handle:
            payload = json.load(handle)

        clients = [Client.from_document(doc) for doc in payload.get("clients", [])]
        transactions = [Transaction.from_document(doc) for doc in payload.get("transactions", [])]
        payments = [Payment.from_document(doc) for doc in payload.get("payments", [])]
        log.info(
            "Loaded local snapshot: %d clients, %d transactions, %d payments",
            len(clients), len(transactions), len(payments),
        )
        return clients, transactions, payments
