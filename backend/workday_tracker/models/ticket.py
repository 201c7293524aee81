# FILE: backend/workday_tracker/models/ticket.py
# TICKET MODEL - ARCHIVE VIEW
# 1. Only the archive fields are modelled strictly; everything else on the
#    ticket document passes through as extra data.
# 2. Legacy tickets stored images as bare URL strings; they are lifted to ImageRef.

from pydantic import BaseModel, Field, ConfigDict, field_validator
from typing import Optional, List, Any
from datetime import datetime
from enum import Enum

TICKETS_COLLECTION = "tickets"
WORKDAYS_COLLECTION = "workdays"
TICKET_IMAGES_COLLECTION = "ticketImages"

class TicketArchiveStatus(str, Enum):
    ACTIVE = "active"
    IMAGES_ARCHIVED = "images_archived"
    FULLY_ARCHIVED = "fully_archived"

class ImageRef(BaseModel):
    id: str
    filename: Optional[str] = None
    url: Optional[str] = None
    size: Optional[int] = None
    content_type: Optional[str] = Field(default=None, alias="contentType")
    archived: bool = False
    archived_at: Optional[datetime] = Field(default=None, alias="archivedAt")

    model_config = ConfigDict(populate_by_name=True, extra="allow")

class Ticket(BaseModel):
    id: str
    jobsite: Optional[str] = None
    jobsite_name: Optional[str] = Field(default=None, alias="jobsiteName")
    truck_number: Optional[str] = Field(default=None, alias="truckNumber")
    date: Optional[Any] = None
    images: List[ImageRef] = []

    archive_status: TicketArchiveStatus = Field(default=TicketArchiveStatus.ACTIVE, alias="archiveStatus", validate_default=True)
    archive_date: Optional[datetime] = Field(default=None, alias="archiveDate")
    archived_images: List[str] = Field(default_factory=list, alias="archivedImages")
    archive_file: Optional[str] = Field(default=None, alias="archiveFile")
    archive_row: Optional[int] = Field(default=None, alias="archiveRow")
    last_updated: Optional[datetime] = Field(default=None, alias="lastUpdated")

    model_config = ConfigDict(populate_by_name=True, extra="allow", use_enum_values=True)

    @field_validator("images", mode="before")
    @classmethod
    def lift_legacy_images(cls, v):
        if v is None:
            return []
        return [{"id": img, "url": img} if isinstance(img, str) else img for img in v]

    @field_validator("archive_status", mode="before")
    @classmethod
    def default_missing_status(cls, v):
        return v or TicketArchiveStatus.ACTIVE

    def image_ids(self) -> List[str]:
        return [img.id for img in self.images]

    def find_image(self, image_id: str) -> Optional[ImageRef]:
        return next((img for img in self.images if img.id == image_id), None)

    def all_images_archived(self) -> bool:
        return bool(self.images) and all(img.archived for img in self.images)

    def images_document(self) -> List[dict]:
        return [img.model_dump(by_alias=True, exclude_none=True) for img in self.images]
