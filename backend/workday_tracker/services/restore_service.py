# FILE: backend/workday_tracker/services/restore_service.py
# ARCHIVE RESTORE V2.0 (CLAIM BEFORE WRITE)
# 1. The entry is claimed with a conditional archived -> restored write before the new
#    record exists, so two concurrent restores cannot both succeed.
# 2. If the new record cannot be written the claim is released and a ServiceError raised.
# 3. The restored record always gets a new id; originalId keeps the lineage.

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ..core.errors import ErrorCodes, ServiceError, ValidationError, service_operation, validate_request
from ..core.store import RecordStore, new_document_id
from ..models.archive import (
    ARCHIVE_INDEX_COLLECTION,
    ArchiveEntryStatus,
    ArchiveRestoreRequest,
    ArchiveType,
    RestoreResult,
)
from ..models.ticket import TICKETS_COLLECTION, TICKET_IMAGES_COLLECTION, WORKDAYS_COLLECTION
from .archive_index_service import ArchiveIndexService

logger = logging.getLogger(__name__)

DESTINATION_COLLECTIONS: Dict[ArchiveType, str] = {
    ArchiveType.TICKET: TICKETS_COLLECTION,
    ArchiveType.WORKDAY: WORKDAYS_COLLECTION,
    ArchiveType.IMAGE: TICKET_IMAGES_COLLECTION,
}

_unmapped = set(ArchiveType) - set(DESTINATION_COLLECTIONS)
if _unmapped:
    raise RuntimeError(f"Archive types without a restore destination: {sorted(t.value for t in _unmapped)}")


def resolve_destination(entry_type: Any, override: Optional[str] = None) -> str:
    if override:
        return override
    try:
        return DESTINATION_COLLECTIONS[ArchiveType(entry_type)]
    except (ValueError, KeyError):
        raise ValidationError(f"Unsupported archive type: {entry_type}", ErrorCodes.DATA_INVALID)


class RestoreService:
    def __init__(self, store: RecordStore, index: Optional[ArchiveIndexService] = None):
        self.store = store
        self.index = index or ArchiveIndexService(store)

    async def _release_claim(self, entry_id: str) -> None:
        try:
            await self.store.update_if(
                ARCHIVE_INDEX_COLLECTION,
                entry_id,
                {"status": ArchiveEntryStatus.RESTORED.value, "restoredId": None},
                {"status": ArchiveEntryStatus.ARCHIVED.value, "restoredAt": None},
            )
        except Exception as e:
            logger.error(f"--- [Restore] Could not release claim on archive entry {entry_id}: {e} ---")

    @service_operation("restore archived item")
    async def restore(self, request: ArchiveRestoreRequest) -> RestoreResult:
        entry = await self.index.get_entry(request.id)

        if entry.status == ArchiveEntryStatus.RESTORED.value:
            raise ValidationError("This item has already been restored", details={"restoredId": entry.restored_id})

        destination = resolve_destination(entry.type, request.destination_collection)
        restored_at = datetime.now(timezone.utc)

        claimed = await self.store.update_if(
            ARCHIVE_INDEX_COLLECTION,
            request.id,
            {"status": ArchiveEntryStatus.ARCHIVED.value},
            {"status": ArchiveEntryStatus.RESTORED.value, "restoredAt": restored_at, "restoredId": None},
        )
        if not claimed:
            # Another caller restored it between the read and the claim
            raise ValidationError("This item has already been restored")

        restored_data = {
            **entry.metadata,
            "restoredAt": restored_at,
            "restoredFrom": request.id,
            "originalId": entry.original_id,
        }
        try:
            new_id = await self.store.insert(destination, restored_data, doc_id=new_document_id())
        except Exception as e:
            await self._release_claim(request.id)
            raise ServiceError(
                f"Failed to write restored {entry.type} into '{destination}'",
                "archiveService",
                details={"entryId": request.id, "originalError": str(e)},
            ) from e

        try:
            await self.store.update(ARCHIVE_INDEX_COLLECTION, request.id, {"restoredId": new_id})
        except Exception as e:
            # The record exists; the entry needs its restoredId set by hand
            logger.error(f"--- [Restore] Entry {request.id} restored as {destination}/{new_id} but restoredId was not recorded: {e} ---")
            raise ServiceError(
                f"Restored {entry.type} as {new_id} but could not record it on the archive entry",
                "archiveService",
                details={"entryId": request.id, "newId": new_id, "destination": destination, "originalError": str(e)},
            ) from e

        logger.info(f"--- [Restore] {entry.type} {entry.original_id} restored into '{destination}' as {new_id} ---")
        return RestoreResult(success=True, original_id=entry.original_id, new_id=new_id, type=entry.type)


async def restore_archived_item(
    store: RecordStore,
    entry_id: str,
    destination_collection: Optional[str] = None,
) -> RestoreResult:
    request = validate_request(ArchiveRestoreRequest, {"id": entry_id, "destination_collection": destination_collection})
    return await RestoreService(store).restore(request)
