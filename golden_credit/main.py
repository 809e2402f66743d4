from contextlib import asynccontextmanager

from fastapi import FastAPI
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from golden_credit import log
from golden_credit.api.errors import register_exception_handlers
from golden_credit.api.v1.api import api_router
from golden_credit.core.config import Settings, settings
from golden_credit.db.change_stream import ChangeStreamListener
from golden_credit.db.local_store import LocalSnapshotStore
from golden_credit.db.mongo import connect_to_mongo, disconnect_from_mongo, get_db, mongodb
from golden_credit.repositories.ledger_repo import LedgerRepository
from golden_credit.services.credit_service import CreditService
from golden_credit.services.ledger_store import LedgerStore
from golden_credit.services.sync_bridge import EntityType, SyncBridge
from golden_credit.utils.bottle_parser import infer_bottle_counts


def build_credit_service(db: AsyncIOMotorDatabase, config: Settings = settings) -> CreditService:
    """Wire the ledger store, repository and fallback store into one service."""
    return CreditService(
        store=LedgerStore(),
        repository=LedgerRepository(
            db,
            use_transactions=config.USE_TRANSACTIONS,
            clients_collection=config.CLIENTS_COLLECTION,
            transactions_collection=config.TRANSACTIONS_COLLECTION,
            payments_collection=config.PAYMENTS_COLLECTION,
        ),
        local_store=LocalSnapshotStore(config.LOCAL_SNAPSHOT_PATH),
        bottle_inference=infer_bottle_counts if config.AUTO_INFER_BOTTLES else None,
        settle_resets_bottles=config.SETTLE_RESETS_BOTTLES,
        id_prefix=config.CLIENT_ID_PREFIX,
        id_width=config.CLIENT_ID_WIDTH,
        timeout=config.REMOTE_TIMEOUT_SECONDS,
    )


def build_listener(db: AsyncIOMotorDatabase, service: CreditService, config: Settings = settings) -> ChangeStreamListener:
    tables = {
        config.CLIENTS_COLLECTION: EntityType.CLIENT,
        config.TRANSACTIONS_COLLECTION: EntityType.TRANSACTION,
        config.PAYMENTS_COLLECTION: EntityType.PAYMENT,
    }
    return ChangeStreamListener(db, SyncBridge(service.store), tables)


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        await connect_to_mongo()
    except PyMongoError as exc:
        if mongodb.db is None:
            raise
        log.warning("MongoDB unreachable at startup: %s", exc)

    service = build_credit_service(get_db())

    # Started by every load that reaches MongoDB, so a refresh after an
    # offline start or a dropped stream resumes notifications
    listener = None
    if settings.ENABLE_CHANGE_STREAM:
        listener = build_listener(get_db(), service)
        service.on_online = listener.start

    await service.load()
    app.state.credit_service = service

    yield

    if listener is not None:
        await listener.stop()
    if mongodb.client is not None:
        await disconnect_from_mongo()


app = FastAPI(title=settings.PROJECT_NAME, version=settings.PROJECT_VERSION, lifespan=lifespan)
register_exception_handlers(app)

@app.get("/")
async def root():
    return {"message": "Welcome to Golden Credit API"}

app.include_router(api_router, prefix=settings.API_V1_STR)
