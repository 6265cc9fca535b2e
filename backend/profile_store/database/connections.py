"""
MongoDB connection management.

A bootstrap run owns exactly one client for its lifetime; there is no pooled
global client to share.
"""
import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import ConfigurationError, ConnectionFailure, OperationFailure

from profile_store.config import Settings, get_settings
from profile_store.core.errors import DatabaseConnectionError

logger = logging.getLogger(__name__)


def create_mongo_client(
    mongo_uri: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> AsyncIOMotorClient:
    """Create a MongoDB client without contacting the server."""
    settings = settings or get_settings()
    try:
        return AsyncIOMotorClient(
            mongo_uri or settings.mongo_uri,
            serverSelectionTimeoutMS=settings.server_selection_timeout_ms,
        )
    except ConfigurationError as e:
        raise DatabaseConnectionError(f"Invalid MongoDB URI: {e}") from e


async def connect(
    mongo_uri: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> AsyncIOMotorClient:
    """
    Create a client and verify the server answers.

    Raises:
        DatabaseConnectionError: If the server is unreachable or rejects
            authentication
    """
    client = create_mongo_client(mongo_uri, settings)
    try:
        await client.admin.command("ping")
    except (ConnectionFailure, OperationFailure) as e:
        client.close()
        raise DatabaseConnectionError(f"Cannot reach MongoDB: {e}") from e
    logger.info("Connected to MongoDB")
    return client


def close_client(client: Optional[AsyncIOMotorClient]) -> None:
    """Close a client created by connect()."""
    if client is not None:
        client.close()
        logger.info("Disconnected")
