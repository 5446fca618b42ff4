import logging

from motor.motor_asyncio import AsyncIOMotorClient
from .config import settings

logger = logging.getLogger(__name__)

class MongoDB:
    client: AsyncIOMotorClient = None
    db = None

mongodb = MongoDB()

async def connect_to_mongo():
    mongodb.client = AsyncIOMotorClient(settings.MONGO_URI)
    mongodb.db = mongodb.client[settings.MONGO_DB]
    await mongodb.db["files"].create_index([("owner", 1), ("created_at", -1)])
    await mongodb.db["files"].create_index("remote_id")
    logger.info("Connected to MongoDB: %s", settings.MONGO_DB)

async def close_mongo_connection():
    if mongodb.client is not None:
        mongodb.client.close()
    logger.info("MongoDB connection closed")

def get_files_collection():
    if mongodb.db is None:
        raise RuntimeError("MongoDB not initialized")
    return mongodb.db["files"]
