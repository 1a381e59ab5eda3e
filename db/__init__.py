"""
Database module for Site Inspector.

This module provides database connectivity, models, and queries
for storing uploaded site photos and their enrichment data.
"""

from db.database import (
    create_db_engine,
    create_session_factory,
    init_db,
    session_scope,
)
from db.models import Photo, ProcessingStatus, ReportType
from db.operations import PhotoRepository

__all__ = [
    "create_db_engine",
    "create_session_factory",
    "init_db",
    "session_scope",
    "Photo",
    "ProcessingStatus",
    "ReportType",
    "PhotoRepository",
]
