"""
Database read operations for Site Inspector.

Provides PhotoRepository class with methods for:
- Looking up photos by id or project
- Querying by AI processing status
- Counting records
"""

import logging

from sqlalchemy import func, select
from sqlalchemy.orm import sessionmaker

from db.database import session_scope
from db.models import Photo, ProcessingStatus

logger = logging.getLogger(__name__)


class PhotoRepository:
    """
    Repository for Photo database queries.

    Each query opens its own session from the injected factory.
    """

    def __init__(self, session_factory: sessionmaker):
        """
        Initialize repository.

        Args:
            session_factory: Factory used to open sessions.
        """
        self._session_factory = session_factory

    def get_by_id(self, photo_id: int) -> Photo | None:
        """
        Get photo by ID.

        Args:
            photo_id: Primary key of the photo.

        Returns:
            Photo instance or None if not found.
        """
        with session_scope(self._session_factory) as session:
            return session.get(Photo, photo_id)

    def get_by_project(
        self,
        project_id: str,
        status: ProcessingStatus | None = None,
    ) -> list[Photo]:
        """
        Get all photos for a project in upload order.

        Args:
            project_id: Project reference.
            status: Optional status filter.

        Returns:
            List of Photo instances.
        """
        stmt = (
            select(Photo)
            .where(Photo.project_id == project_id)
            .order_by(Photo.id)
        )
        if status:
            stmt = stmt.where(Photo.ai_processing_status == status)

        with session_scope(self._session_factory) as session:
            return list(session.execute(stmt).scalars().all())

    def get_pending(self, limit: int | None = None) -> list[Photo]:
        """
        Get photos waiting for AI analysis, oldest first.

        Args:
            limit: Maximum number of photos to return.

        Returns:
            List of Photo instances with pending status.
        """
        stmt = select(Photo).where(
            Photo.ai_processing_status == ProcessingStatus.PENDING
        ).order_by(Photo.id)

        if limit:
            stmt = stmt.limit(limit)

        with session_scope(self._session_factory) as session:
            return list(session.execute(stmt).scalars().all())

    def get_failed(self) -> list[Photo]:
        """Get photos whose analysis failed."""
        stmt = select(Photo).where(
            Photo.ai_processing_status == ProcessingStatus.FAILED
        ).order_by(Photo.id)

        with session_scope(self._session_factory) as session:
            return list(session.execute(stmt).scalars().all())

    def count(self, status: ProcessingStatus | None = None) -> int:
        """
        Count photos, optionally filtered by status.

        Args:
            status: Filter by AI processing status.

        Returns:
            Number of matching photos.
        """
        stmt = select(func.count(Photo.id))
        if status:
            stmt = stmt.where(Photo.ai_processing_status == status)

        with session_scope(self._session_factory) as session:
            return session.execute(stmt).scalar_one()
