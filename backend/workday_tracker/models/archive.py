# FILE: backend/workday_tracker/models/archive.py
# ARCHIVE MODELS V1.2
# 1. ArchiveIndexEntry / ArchiveImageRecord mirror the stored camelCase documents.
# 2. expiresAt is always derived from archivedAt + retentionPeriod (default period when unset).
# 3. Search accepts plural or singular type names; stored types are singular.

from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator
from typing import Optional, List, Dict, Any, Union
from datetime import datetime, timedelta
from enum import Enum

from ..core.config import settings

ARCHIVE_INDEX_COLLECTION = "archiveIndex"
ARCHIVE_IMAGES_COLLECTION = "archiveImages"

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"

class ArchiveType(str, Enum):
    TICKET = "ticket"
    WORKDAY = "workday"
    IMAGE = "image"

class ArchiveEntryStatus(str, Enum):
    ARCHIVED = "archived"
    RESTORED = "restored"

class ArchiveSearchType(str, Enum):
    ALL = "all"
    TICKETS = "tickets"
    WORKDAYS = "workdays"
    IMAGES = "images"

    def to_archive_type(self) -> Optional[ArchiveType]:
        if self is ArchiveSearchType.ALL:
            return None
        return ArchiveType(self.value[:-1])

def compute_expiry(archived_at: datetime, retention_period: Optional[int]) -> datetime:
    days = retention_period if retention_period is not None else settings.DEFAULT_RETENTION_DAYS
    return archived_at + timedelta(days=days)

def business_date(value: Any, fallback: datetime) -> str:
    """Normalizes a record's business date to YYYY-MM-DD so range filters compare cleanly."""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, str) and value:
        return value[:10]
    return fallback.date().isoformat()


class _ArchivedRecord(BaseModel):
    id: Optional[str] = None
    # Unknown legacy types load as plain strings so restore can reject them cleanly
    type: Union[ArchiveType, str]
    original_id: str = Field(alias="originalId")
    title: str
    description: Optional[str] = None
    date: str
    archived_at: datetime = Field(alias="archivedAt")
    metadata: Dict[str, Any] = Field(default_factory=dict)
    retention_period: Optional[int] = Field(default=None, alias="retentionPeriod", ge=1)
    expires_at: Optional[datetime] = Field(default=None, alias="expiresAt")

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    @model_validator(mode="after")
    def derive_expiry(self):
        self.expires_at = compute_expiry(self.archived_at, self.retention_period)
        return self

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude={"id"}, exclude_none=True)


class ArchiveIndexEntry(_ArchivedRecord):
    archived_by: Optional[str] = Field(default=None, alias="archivedBy")
    status: ArchiveEntryStatus = Field(default=ArchiveEntryStatus.ARCHIVED, validate_default=True)
    restored_at: Optional[datetime] = Field(default=None, alias="restoredAt")
    restored_id: Optional[str] = Field(default=None, alias="restoredId")


class ArchiveImageRecord(_ArchivedRecord):
    type: ArchiveType = Field(default=ArchiveType.IMAGE, validate_default=True)


# --- REQUESTS ---

class ArchiveSearchParams(BaseModel):
    type: ArchiveSearchType = ArchiveSearchType.ALL
    query: Optional[str] = None
    start_date: Optional[str] = Field(default=None, alias="startDate", pattern=DATE_PATTERN)
    end_date: Optional[str] = Field(default=None, alias="endDate", pattern=DATE_PATTERN)
    metadata_filters: Dict[str, Any] = Field(default_factory=dict, alias="metadataFilters")
    limit: int = Field(default=settings.ARCHIVE_SEARCH_DEFAULT_LIMIT, ge=1, le=settings.ARCHIVE_SEARCH_MAX_LIMIT)
    offset: int = Field(default=0, ge=0)

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("type", mode="before")
    @classmethod
    def pluralize_type(cls, v):
        if v is None:
            return ArchiveSearchType.ALL
        if isinstance(v, ArchiveType):
            v = v.value
        if isinstance(v, str):
            v = v.strip().lower()
            if v in {t.value for t in ArchiveType}:
                return f"{v}s"
        return v

    @field_validator("metadata_filters", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return v or {}


class ArchiveImagesRequest(BaseModel):
    ticket_id: str = Field(alias="ticketId", min_length=1)
    ids: List[str] = Field(min_length=1)
    retention_period: int = Field(default=settings.DEFAULT_RETENTION_DAYS, alias="retentionPeriod", ge=1)

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("ids")
    @classmethod
    def drop_duplicates(cls, v: List[str]) -> List[str]:
        return list(dict.fromkeys(v))


class ArchiveRestoreRequest(BaseModel):
    id: str = Field(min_length=1)
    destination_collection: Optional[str] = Field(default=None, alias="destinationCollection")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("destination_collection", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


# --- RESULTS ---

class ArchiveSearchResult(BaseModel):
    items: List[ArchiveIndexEntry]
    total: int
    has_more: bool = Field(alias="hasMore")

    model_config = ConfigDict(populate_by_name=True)

class ArchiveImagesResult(BaseModel):
    success: bool
    archived_count: int = Field(alias="archivedCount")
    ticket_id: str = Field(alias="ticketId")
    failed_ids: Optional[List[str]] = Field(default=None, alias="failedIds")

    model_config = ConfigDict(populate_by_name=True)

class RestoreResult(BaseModel):
    success: bool = True
    original_id: str = Field(alias="originalId")
    new_id: str = Field(alias="newId")
    type: Union[ArchiveType, str]

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)
