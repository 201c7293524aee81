# FILE: backend/workday_tracker/core/lifespan.py
# ARCHIVE ENGINE - LIFESPAN
# 1. Connects motor, verifies archive indexes, yields a ready ArchiveEngine.
# 2. Index creation failures are logged; the engine still starts.

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator
import logging
from pymongo import ASCENDING, DESCENDING

from .db import connect_to_motor, close_mongo_connections, get_async_db
from .store import MongoRecordStore
from ..services.archive_engine import ArchiveEngine
from ..models.archive import ARCHIVE_IMAGES_COLLECTION, ARCHIVE_INDEX_COLLECTION
from ..models.ticket import TICKETS_COLLECTION

logger = logging.getLogger(__name__)


async def create_mongo_indexes(db: Any):
    """
    Creates the indexes behind archive search and per-ticket image lookups.
    """
    try:
        logger.info("--- [Lifespan] Optimizing Archive Indexes... ---")

        # 1. Archive search: type filter + newest first
        await db[ARCHIVE_INDEX_COLLECTION].create_index([("type", ASCENDING), ("archivedAt", DESCENDING)])
        await db[ARCHIVE_INDEX_COLLECTION].create_index([("date", ASCENDING)])
        await db[ARCHIVE_INDEX_COLLECTION].create_index([("originalId", ASCENDING)])
        await db[ARCHIVE_INDEX_COLLECTION].create_index([("status", ASCENDING)])

        # 2. Archived images by ticket
        await db[ARCHIVE_IMAGES_COLLECTION].create_index([("metadata.ticketId", ASCENDING), ("archivedAt", DESCENDING)])

        # 3. Tickets by archive status
        await db[TICKETS_COLLECTION].create_index([("archiveStatus", ASCENDING)])

        logger.info("--- [Lifespan] Archive Indexes Verified/Created. ---")
    except Exception as e:
        logger.error(f"--- [Lifespan] Index Creation Failed: {e} ---")


@asynccontextmanager
async def lifespan() -> AsyncIterator[ArchiveEngine]:
    logger.info("--- [Lifespan] Archive engine startup sequence initiated. ---")

    await connect_to_motor()
    db = next(get_async_db())
    await create_mongo_indexes(db)

    logger.info("--- [Lifespan] All resources initialized. Archive engine is ready. ---")
    try:
        yield ArchiveEngine(MongoRecordStore(db))
    finally:
        logger.info("--- [Lifespan] Shutdown sequence initiated. ---")
        close_mongo_connections()
