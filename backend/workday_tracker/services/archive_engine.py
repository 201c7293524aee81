# FILE: backend/workday_tracker/services/archive_engine.py
# ARCHIVE ENGINE FACADE
# 1. One store, one shared index service, four lifecycle operations.

from typing import Any, Dict, List, Optional

from ..core.errors import validate_request
from ..core.store import RecordStore
from ..models.archive import (
    ArchiveImagesRequest,
    ArchiveImagesResult,
    ArchiveRestoreRequest,
    ArchiveSearchParams,
    ArchiveSearchResult,
    RestoreResult,
)
from ..models.ticket import Ticket
from .archive_index_service import ArchiveIndexService
from .image_archive_service import ImageArchiveService
from .restore_service import RestoreService
from .ticket_archive_service import TicketArchiveService


class ArchiveEngine:
    def __init__(self, store: RecordStore):
        self.store = store
        self.index = ArchiveIndexService(store)
        self.images = ImageArchiveService(store, self.index)
        self.tickets = TicketArchiveService(store, self.index)
        self.restorer = RestoreService(store, self.index)

    async def search_archive(self, **params: Any) -> ArchiveSearchResult:
        """Accepts snake_case or camelCase keys: type, startDate, endDate, metadataFilters, limit, offset, query."""
        return await self.index.search(validate_request(ArchiveSearchParams, params))

    async def archive_ticket_images(
        self, ticket_id: str, image_ids: List[str], retention_period: Optional[int] = None
    ) -> ArchiveImagesResult:
        data: Dict[str, Any] = {"ticket_id": ticket_id, "ids": image_ids}
        if retention_period is not None:
            data["retention_period"] = retention_period
        return await self.images.archive_ticket_images(validate_request(ArchiveImagesRequest, data))

    async def fully_archive_ticket(self, ticket_id: str, archived_by: Optional[str] = None) -> Ticket:
        return await self.tickets.fully_archive_ticket(ticket_id, archived_by=archived_by)

    async def restore_archived_item(self, entry_id: str, destination_collection: Optional[str] = None) -> RestoreResult:
        request = validate_request(ArchiveRestoreRequest, {"id": entry_id, "destination_collection": destination_collection})
        return await self.restorer.restore(request)
