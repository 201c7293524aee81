# FILE: backend/workday_tracker/__init__.py

from .services.archive_engine import ArchiveEngine
from .core.lifespan import lifespan

__version__ = "1.0.0"
