"""MongoDB change stream feeding the SyncBridge."""

import asyncio
from typing import Any, Dict, Mapping, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from golden_credit import log
from golden_credit.services.sync_bridge import ChangeEvent, ChangeKind, EntityType, SyncBridge

OPERATION_KINDS = {
    "insert": ChangeKind.INSERT,
    "update": ChangeKind.UPDATE,
    "replace": ChangeKind.UPDATE,
    "delete": ChangeKind.DELETE,
}


def to_change_event(change: Mapping[str, Any], tables: Mapping[str, EntityType]) -> Optional[ChangeEvent]:
    """
    Translate a raw change stream document into a ChangeEvent.

    Returns None for collections outside ``tables``, for unsupported
    operations (drop, invalidate, ...) and for updates whose document was
    already gone when the full document was looked up.
    """
    collection = change.get("ns", {}).get("coll")
    table = tables.get(collection)
    kind = OPERATION_KINDS.get(change.get("operationType"))
    if table is None or kind is None:
        return None

    key: Dict[str, Any] = dict(change.get("documentKey") or {})
    if kind == ChangeKind.DELETE:
        return ChangeEvent(kind=kind, table=table, old=key)

    full_document = change.get("fullDocument")
    if full_document is None:
        return None
    return ChangeEvent(kind=kind, table=table, new=dict(full_document), old=key or None)


class ChangeStreamListener:
    """Background task watching the ledger collections."""

    def __init__(self, db: AsyncIOMotorDatabase, bridge: SyncBridge, tables: Mapping[str, EntityType]):
        self.db = db
        self.bridge = bridge
        self.tables = dict(tables)
        self._task: Optional[asyncio.Task] = None

    async def run(self) -> None:
        pipeline = [
            {"$match": {
                "ns.coll": {"$in": list(self.tables)},
                "operationType": {"$in": list(OPERATION_KINDS)},
            }}
        ]
        try:
            async with self.db.watch(pipeline, full_document="updateLookup") as stream:
                log.info("Watching change stream on %s", ", ".join(self.tables))
                async for change in stream:
                    event = to_change_event(change, self.tables)
                    if event is not None:
                        self.bridge.apply(event)
        except PyMongoError as exc:
            log.error("Change stream stopped: %s; refresh the ledger to resume", exc)

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
