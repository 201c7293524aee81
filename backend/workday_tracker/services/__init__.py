# FILE: backend/workday_tracker/services/__init__.py
# SERVICE REGISTRY

from . import (
    archive_index_service,
    image_archive_service,
    ticket_archive_service,
    restore_service,
    archive_engine,
)
