import logging
from typing import Optional

from pymongo import MongoClient
from pymongo.database import Database

from cart_engine.core.config import settings

logger = logging.getLogger(__name__)

# Global MongoDB client
_client: Optional[MongoClient] = None
_database: Optional[Database] = None


def connect_to_mongo() -> None:
    """Connect to MongoDB."""
    global _client, _database
    _client = MongoClient(settings.MONGODB_URI)
    _database = _client[settings.MONGODB_DB_NAME]
    logger.info(f"Connected to MongoDB: {settings.MONGODB_DB_NAME}")


def close_mongo_connection() -> None:
    """Close MongoDB connection."""
    global _client, _database
    if _client:
        _client.close()
        _client = None
        _database = None
        logger.info("Closed MongoDB connection")


def get_database() -> Optional[Database]:
    """Get MongoDB database instance."""
    return _database
