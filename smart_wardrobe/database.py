from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING, DESCENDING
from smart_wardrobe.config import Settings
import logging

logger = logging.getLogger(__name__)


class Database:
    client: AsyncIOMotorClient | None = None
    settings: Settings | None = None

    @classmethod
    async def connect_db(cls, settings: Settings):
        """Connect to MongoDB"""
        cls.settings = settings
        try:
            cls.client = AsyncIOMotorClient(
                settings.MONGODB_URL,
                serverSelectionTimeoutMS=5000,
                connectTimeoutMS=5000,
                socketTimeoutMS=5000,
            )

            # Test connection
            await cls.client.admin.command("ping")
            logger.info("✅ Successfully connected to MongoDB")

            await cls.create_indexes()

        except Exception as e:
            cls.client = None
            logger.critical(f"❌ Failed to connect to MongoDB: {e}")
            raise

    @classmethod
    async def close_db(cls):
        """Close MongoDB connection"""
        if cls.client is not None:
            cls.client.close()
            cls.client = None
            logger.info("MongoDB connection closed")

    @classmethod
    def get_database(cls):
        """Get database instance (FAIL FAST)"""
        if cls.client is None:
            raise RuntimeError(
                "Database not connected. connect_db() was not called or failed."
            )
        return cls.client[cls.settings.DATABASE_NAME]

    @classmethod
    async def ping(cls) -> bool:
        if cls.client is None:
            return False
        await cls.client.admin.command("ping")
        return True

    @classmethod
    async def create_indexes(cls):
        """Create database indexes for optimization"""
        db = cls.get_database()

        # Users (guest/bypass documents carry no email)
        await db.users.create_index([("email", ASCENDING)], unique=True, sparse=True)

        # Garments
        await db.garments.create_index(
            [("user_id", ASCENDING), ("category", ASCENDING)]
        )
        await db.garments.create_index(
            [("user_id", ASCENDING), ("created_at", DESCENDING)]
        )

        # Behavior events
        await db.behavior_events.create_index(
            [("user_id", ASCENDING), ("created_at", DESCENDING)]
        )
        await db.behavior_events.create_index(
            [("user_id", ASCENDING), ("action", ASCENDING), ("created_at", DESCENDING)]
        )
        await db.behavior_events.create_index(
            [("user_id", ASCENDING), ("target_type", ASCENDING), ("created_at", DESCENDING)]
        )

        # Old behavior events are purged by MongoDB itself
        await db.behavior_events.create_index(
            [("created_at", ASCENDING)],
            expireAfterSeconds=cls.settings.BEHAVIOR_RETENTION_DAYS * 24 * 60 * 60,
        )

        logger.info("✅ Database indexes created successfully")


# Dependency
async def get_database():
    return Database.get_database()
