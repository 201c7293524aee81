# FILE: backend/workday_tracker/core/db.py
# ARCHIVE ENGINE - ASYNC MONGO CONNECTION
# 1. One motor client per process, connected during the lifespan.
# 2. get_async_db / get_record_store are the providers handed to callers.

import logging
from typing import Any, Generator, Optional
from urllib.parse import urlparse

from pymongo.errors import ConnectionFailure

from .config import settings
from .store import MongoRecordStore

logger = logging.getLogger(__name__)

async_mongo_client: Optional[Any] = None
async_db_instance: Optional[Any] = None


async def connect_to_motor():
    global async_mongo_client, async_db_instance
    if async_db_instance is not None: return

    logger.info("--- [DB] Attempting to connect to Async MongoDB (Motor)... ---")
    try:
        from motor.motor_asyncio import AsyncIOMotorClient
        client = AsyncIOMotorClient(settings.DATABASE_URI, serverSelectionTimeoutMS=settings.DATABASE_TIMEOUT_MS)
        await client.admin.command('ping')
        db_name = urlparse(settings.DATABASE_URI).path.lstrip('/')
        if not db_name:
            raise ValueError("Database name not found in DATABASE_URI.")

        async_mongo_client = client
        async_db_instance = client[db_name]
        logger.info(f"--- [DB] Successfully connected to Async MongoDB (Motor): '{db_name}' ---")
    except (ConnectionFailure, ValueError) as e:
        logger.critical(f"--- [DB] Could not connect to Async MongoDB (Motor): {e} ---")
        raise


# --- Dependency Providers ---
def get_async_db() -> Generator[Any, None, None]:
    if async_db_instance is None:
        raise RuntimeError("Asynchronous database is not connected. Check application lifespan.")
    yield async_db_instance


def get_record_store() -> MongoRecordStore:
    return MongoRecordStore(next(get_async_db()))


# --- Shutdown Logic ---
def close_mongo_connections():
    global async_mongo_client, async_db_instance
    if async_mongo_client:
        async_mongo_client.close()
        logger.info("--- [DB] Async MongoDB (Motor) connection closed. ---")
    async_mongo_client = None
    async_db_instance = None
