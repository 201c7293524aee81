# FILE: backend/workday_tracker/services/archive_index_service.py
# ARCHIVE INDEX V1.1 (FILTERED SEARCH)
# 1. Search reads only the archiveIndex collection, never the source collections.
# 2. 'total' is the filtered count before paging; hasMore = offset + len(items) < total.
# 3. Store failures surface as ServiceError, an empty result is never used to hide one.

import re
import logging
from typing import Any, Dict, Optional

from ..core.errors import NotFoundError, service_operation, validate_request
from ..core.store import RecordStore
from ..models.archive import (
    ARCHIVE_INDEX_COLLECTION,
    ArchiveIndexEntry,
    ArchiveSearchParams,
    ArchiveSearchResult,
)

logger = logging.getLogger(__name__)

class ArchiveIndexService:
    def __init__(self, store: RecordStore):
        self.store = store

    def _build_query(self, params: ArchiveSearchParams) -> Dict[str, Any]:
        query: Dict[str, Any] = {}

        archive_type = params.type.to_archive_type()
        if archive_type is not None:
            query["type"] = archive_type.value

        # Business date, not archivedAt
        date_range: Dict[str, str] = {}
        if params.start_date:
            date_range["$gte"] = params.start_date
        if params.end_date:
            date_range["$lte"] = params.end_date
        if date_range:
            query["date"] = date_range

        for key, value in params.metadata_filters.items():
            query[f"metadata.{key}"] = value

        if params.query and params.query.strip():
            query["title"] = {"$regex": re.escape(params.query.strip()), "$options": "i"}

        return query

    @service_operation("search archive")
    async def search(self, params: ArchiveSearchParams) -> ArchiveSearchResult:
        query = self._build_query(params)

        total = await self.store.count(ARCHIVE_INDEX_COLLECTION, query)
        docs = await self.store.find(
            ARCHIVE_INDEX_COLLECTION,
            query,
            sort=[("archivedAt", -1)],
            limit=params.limit,
            offset=params.offset,
        )
        items = [ArchiveIndexEntry.model_validate(doc) for doc in docs]

        logger.info(f"--- [ArchiveIndex] Search {query} matched {total}, returned {len(items)} ---")
        return ArchiveSearchResult(
            items=items,
            total=total,
            has_more=params.offset + len(items) < total,
        )

    @service_operation("load archive entry")
    async def get_entry(self, entry_id: str) -> ArchiveIndexEntry:
        doc = await self.store.get(ARCHIVE_INDEX_COLLECTION, entry_id)
        if not doc:
            raise NotFoundError(f"Archived item with ID {entry_id} not found")
        return ArchiveIndexEntry.model_validate(doc)

    async def create_entry(self, entry: ArchiveIndexEntry, entry_id: Optional[str] = None) -> ArchiveIndexEntry:
        """Persists a new index entry. Callers decide how a failure here is accounted."""
        new_id = await self.store.insert(ARCHIVE_INDEX_COLLECTION, entry.to_document(), doc_id=entry_id)
        return entry.model_copy(update={"id": new_id})


async def search_archive(
    store: RecordStore,
    type: Optional[str] = None,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    metadata_filters: Optional[Dict[str, Any]] = None,
    limit: Optional[int] = None,
    offset: int = 0,
    query: Optional[str] = None,
) -> ArchiveSearchResult:
    data: Dict[str, Any] = {
        "type": type,
        "start_date": start_date,
        "end_date": end_date,
        "metadata_filters": metadata_filters,
        "offset": offset,
        "query": query,
    }
    if limit is not None:
        data["limit"] = limit
    params = validate_request(ArchiveSearchParams, data)
    return await ArchiveIndexService(store).search(params)
