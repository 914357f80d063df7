from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase

from class_service.core.config import config
from class_service.core.logger import logger

CLASSES_COLLECTION = "classes"
COUNTERS_COLLECTION = "counters"

_client: Optional[AsyncIOMotorClient] = None


def get_client() -> AsyncIOMotorClient:
    global _client
    if _client is None:
        logger.debug(
            "Creating MongoDB client",
            metadata={"event": "mongodb_connect_attempt", "uri": f"{config.mongodb_host}:{config.mongodb_port}", "db_name": config.mongodb_database}
        )
        _client = AsyncIOMotorClient(config.mongodb_url)
    return _client


def get_db() -> AsyncIOMotorDatabase:
    return get_client()[config.mongodb_database]


async def ping_db() -> bool:
    """Check the database answers a ping"""
    try:
        await get_db().command("ping")
        return True
    except Exception as e:
        logger.warning(
            f"MongoDB database '{config.mongodb_database}' is not accessible: {e}",
            metadata={"event": "mongodb_ping_failed", "error": str(e)}
        )
        return False


def get_class_collection() -> AsyncIOMotorCollection:
    return get_db()[CLASSES_COLLECTION]


def get_counters_collection() -> AsyncIOMotorCollection:
    return get_db()[COUNTERS_COLLECTION]


def close_client() -> None:
    global _client
    if _client is not None:
        _client.close()
        _client = None
