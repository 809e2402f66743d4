from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from golden_credit import log
from golden_credit.core.config import settings


class MongoDatabase:
    """MongoDB connection manager."""

    client: AsyncIOMotorClient = None
    db: AsyncIOMotorDatabase = None

mongodb = MongoDatabase()

async def connect_to_mongo():
    """Connect to MongoDB."""
    mongodb.client = AsyncIOMotorClient(
        settings.MONGODB_URI,
        tz_aware=True,
        serverSelectionTimeoutMS=int(settings.REMOTE_TIMEOUT_SECONDS * 1000),
    )
    mongodb.db = mongodb.client[settings.MONGODB_DB]

    # Create indexes
    await create_indexes()
    log.info("Connected to MongoDB: %s", settings.MONGODB_DB)

async def disconnect_from_mongo():
    """Disconnect from MongoDB."""
    if mongodb.client is not None:
        mongodb.client.close()
    log.info("Disconnected from MongoDB")

async def create_indexes():
    """Create database indexes."""
    # Clients are listed by name
    await mongodb.db[settings.CLIENTS_COLLECTION].create_index("name")

    # Per-client history, newest first
    await mongodb.db[settings.TRANSACTIONS_COLLECTION].create_index([("client_id", 1), ("date", -1)])
    await mongodb.db[settings.PAYMENTS_COLLECTION].create_index([("client_id", 1), ("date", -1)])

def get_db() -> AsyncIOMotorDatabase:
    """Get database instance."""
    return mongodb.db
