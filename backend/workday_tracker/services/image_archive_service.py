# FILE: backend/workday_tracker/services/image_archive_service.py
# IMAGE ARCHIVER V2.0 (PARALLEL BATCH)
# 1. Membership of every requested id is checked before anything is written.
# 2. Each image is archived independently; failures land in failedIds. The detail record id is
#    derived from ticket and image, so its insert claims the image and a concurrent
#    second archival of the same image fails with a duplicate key.
# 3. The ticket is updated once, after every per-image attempt has finished, using a
#    conditional write on the images list (retried when another writer got there first).

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from pymongo.errors import DuplicateKeyError

from ..core.config import settings
from ..core.errors import ErrorCodes, NotFoundError, ServiceError, ValidationError, service_operation, validate_request
from ..core.store import RecordStore
from ..models.archive import (
    ARCHIVE_IMAGES_COLLECTION,
    ArchiveImageRecord,
    ArchiveImagesRequest,
    ArchiveImagesResult,
    ArchiveIndexEntry,
    ArchiveType,
    business_date,
)
from ..models.ticket import TICKETS_COLLECTION, ImageRef, Ticket, TicketArchiveStatus
from .archive_index_service import ArchiveIndexService

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "image/jpeg"

def archive_record_id(ticket_id: str, image_id: str) -> str:
    return f"{ticket_id}:{image_id}"

class ImageArchiveService:
    def __init__(
        self,
        store: RecordStore,
        index: Optional[ArchiveIndexService] = None,
        concurrency: Optional[int] = None,
        max_retries: Optional[int] = None,
    ):
        self.store = store
        self.index = index or ArchiveIndexService(store)
        self.concurrency = concurrency or settings.IMAGE_ARCHIVE_CONCURRENCY
        self.max_retries = max_retries or settings.TICKET_UPDATE_MAX_RETRIES

    async def _load_ticket(self, ticket_id: str) -> Tuple[Ticket, Dict[str, Any]]:
        raw = await self.store.get(TICKETS_COLLECTION, ticket_id)
        if not raw:
            raise NotFoundError(f"Ticket with ID {ticket_id} not found")
        return Ticket.model_validate(raw), raw

    async def _archive_image(self, ticket: Ticket, image: ImageRef, retention_period: int) -> None:
        now = datetime.now(timezone.utc)
        record_id = archive_record_id(ticket.id, image.id)
        snapshot = image.model_dump(by_alias=True, exclude_none=True, exclude={"archived", "archived_at"})

        record = ArchiveImageRecord(
            id=record_id,
            original_id=image.id,
            title=image.filename or f"Image {image.id}",
            description=f"Image from ticket {ticket.id}",
            date=business_date(ticket.date, now),
            archived_at=now,
            metadata={
                **snapshot,
                "ticketId": ticket.id,
                "originalPath": image.url,
                "size": image.size or 0,
                "contentType": image.content_type or DEFAULT_CONTENT_TYPE,
            },
            retention_period=retention_period,
        )
        await self.store.insert(ARCHIVE_IMAGES_COLLECTION, record.to_document(), doc_id=record_id)

        # Index summary shares the detail record's id
        entry = ArchiveIndexEntry(
            type=ArchiveType.IMAGE,
            original_id=image.id,
            title=record.title,
            date=record.date,
            archived_at=now,
            metadata={
                **snapshot,
                "ticketId": ticket.id,
                "size": image.size or 0,
                "contentType": image.content_type or DEFAULT_CONTENT_TYPE,
            },
            retention_period=retention_period,
        )
        try:
            await self.index.create_entry(entry, entry_id=record_id)
        except Exception:
            # Release the claim so the image can be archived again later
            await self.store.delete(ARCHIVE_IMAGES_COLLECTION, record_id)
            raise

    async def _attempt(self, semaphore: asyncio.Semaphore, ticket: Ticket, image_id: str, retention_period: int) -> Tuple[str, bool]:
        async with semaphore:
            image = ticket.find_image(image_id)
            if image is None:
                return image_id, False
            if image.archived:
                logger.warning(f"--- [ImageArchiver] Image {image_id} on ticket {ticket.id} is already archived ---")
                return image_id, False
            try:
                await self._archive_image(ticket, image, retention_period)
                return image_id, True
            except DuplicateKeyError:
                logger.warning(f"--- [ImageArchiver] Image {image_id} on ticket {ticket.id} is already being archived ---")
                return image_id, False
            except Exception as e:
                logger.warning(f"--- [ImageArchiver] Failed to archive image {image_id}: {e} ---")
                return image_id, False

    async def _mark_images_archived(self, ticket_id: str, archived_ids: List[str]) -> Ticket:
        for attempt in range(1, self.max_retries + 1):
            ticket, raw = await self._load_ticket(ticket_id)
            now = datetime.now(timezone.utc)

            for img in ticket.images:
                if img.id in archived_ids and not img.archived:
                    img.archived = True
                    img.archived_at = now

            changes: Dict[str, Any] = {
                "images": ticket.images_document(),
                "archivedImages": list(dict.fromkeys([*ticket.archived_images, *archived_ids])),
                "lastUpdated": now,
            }
            # fully_archived already implies the images are gone; it is never demoted here
            if ticket.all_images_archived() and ticket.archive_status != TicketArchiveStatus.FULLY_ARCHIVED.value:
                changes["archiveStatus"] = TicketArchiveStatus.IMAGES_ARCHIVED.value
                changes["archiveDate"] = now

            if await self.store.update_if(TICKETS_COLLECTION, ticket_id, {"images": raw.get("images", [])}, changes):
                return Ticket.model_validate({**raw, **changes})

            logger.warning(f"--- [ImageArchiver] Ticket {ticket_id} changed during update (attempt {attempt}) ---")

        raise ServiceError(
            f"Ticket {ticket_id} kept changing while marking images archived",
            "imageArchiver",
            code=ErrorCodes.DATA_STALE,
            details={"ticketId": ticket_id, "archivedIds": archived_ids},
        )

    @service_operation("archive ticket images")
    async def archive_ticket_images(self, request: ArchiveImagesRequest) -> ArchiveImagesResult:
        ticket, _ = await self._load_ticket(request.ticket_id)

        valid_ids = set(ticket.image_ids())
        invalid_ids = [image_id for image_id in request.ids if image_id not in valid_ids]
        if invalid_ids:
            raise ValidationError(
                f"Some images do not belong to this ticket: {', '.join(invalid_ids)}",
                details={"ticketId": request.ticket_id, "invalidIds": invalid_ids},
            )

        semaphore = asyncio.Semaphore(self.concurrency)
        outcomes = await asyncio.gather(
            *(self._attempt(semaphore, ticket, image_id, request.retention_period) for image_id in request.ids)
        )
        archived_ids = [image_id for image_id, ok in outcomes if ok]
        failed_ids = [image_id for image_id, ok in outcomes if not ok]

        if archived_ids:
            updated = await self._mark_images_archived(request.ticket_id, archived_ids)
            logger.info(
                f"--- [ImageArchiver] Ticket {request.ticket_id}: archived {len(archived_ids)}, "
                f"failed {len(failed_ids)}, status '{updated.archive_status}' ---"
            )
        else:
            logger.error(f"--- [ImageArchiver] Ticket {request.ticket_id}: no image could be archived ---")

        return ArchiveImagesResult(
            success=len(archived_ids) > 0,
            archived_count=len(archived_ids),
            ticket_id=request.ticket_id,
            failed_ids=failed_ids or None,
        )

    @service_operation("load archived image")
    async def get_archived_image(self, archive_id: str) -> ArchiveImageRecord:
        doc = await self.store.get(ARCHIVE_IMAGES_COLLECTION, archive_id)
        if not doc:
            raise NotFoundError(f"Archived image with ID {archive_id} not found")
        return ArchiveImageRecord.model_validate(doc)

    @service_operation("list archived images")
    async def list_archived_images(self, ticket_id: str) -> List[ArchiveImageRecord]:
        docs = await self.store.find(
            ARCHIVE_IMAGES_COLLECTION,
            {"metadata.ticketId": ticket_id},
            sort=[("archivedAt", -1)],
        )
        return [ArchiveImageRecord.model_validate(doc) for doc in docs]


async def archive_ticket_images(
    store: RecordStore,
    ticket_id: str,
    image_ids: List[str],
    retention_period: Optional[int] = None,
) -> ArchiveImagesResult:
    data: Dict[str, Any] = {"ticket_id": ticket_id, "ids": image_ids}
    if retention_period is not None:
        data["retention_period"] = retention_period
    request = validate_request(ArchiveImagesRequest, data)
    return await ImageArchiveService(store).archive_ticket_images(request)
