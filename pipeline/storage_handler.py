"""
Database storage handler for the pipeline.

Provides:
- Photo record creation at the end of ingestion
- AI processing status tracking (pending -> processing -> done/failed)
- Storage of analysis results and drafted reports
- Status statistics
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from db.database import session_scope
from db.models import Photo, ProcessingStatus, ReportType
from db.operations import PhotoRepository

logger = logging.getLogger(__name__)


class PersistenceError(Exception):
    """Raised when a photo record cannot be written."""
    pass


@dataclass
class PhotoRecord:
    """
    Everything the pipeline derived for one upload, ready to persist.

    Built only by the ingestion orchestrator.
    """
    project_id: str
    storage_path: str
    original_filename: str | None = None
    uploaded_by: str | None = None
    description: str | None = None
    location_description: str | None = None
    exif_data: dict[str, Any] | None = None
    weather_data: Any = None
    geo_data: Any = None
    taken_at: datetime | None = None
    ai_processing_status: ProcessingStatus = ProcessingStatus.PENDING


class PhotoStorage:
    """
    Handles storing photo records in the database.

    Manages the lifecycle of photo records:
    - Creating new records
    - Updating AI processing status
    - Storing analysis output
    - Error tracking
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        repository: PhotoRepository | None = None,
    ):
        """
        Initialize storage handler.

        Args:
            session_factory: Factory used to open sessions.
            repository: PhotoRepository instance. If None, creates a new one.
        """
        self._session_factory = session_factory
        self.repository = repository or PhotoRepository(session_factory)

    def create_record(self, record: PhotoRecord) -> Photo:
        """
        Insert a new photo record.

        Args:
            record: Values derived by the ingestion pipeline.

        Returns:
            Created Photo instance.

        Raises:
            PersistenceError: If the insert fails.
        """
        try:
            with session_scope(self._session_factory) as session:
                photo = Photo(
                    project_id=record.project_id,
                    uploaded_by=record.uploaded_by,
                    storage_path=record.storage_path,
                    original_filename=record.original_filename,
                    description=record.description,
                    location_description=record.location_description,
                    exif_data=record.exif_data,
                    weather_data=record.weather_data,
                    geo_data=record.geo_data,
                    taken_at=record.taken_at,
                    ai_processed=False,
                    ai_processing_status=record.ai_processing_status,
                )
                session.add(photo)
                session.flush()
                session.refresh(photo)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Error saving photo data: {e}") from e

        logger.info(f"Created record ID {photo.id} for {record.storage_path}")
        return photo

    def mark_processing(self, photo_id: int) -> None:
        """
        Mark a photo as currently being analyzed.

        Args:
            photo_id: ID of the photo record.
        """
        with session_scope(self._session_factory) as session:
            photo = session.get(Photo, photo_id)
            if photo:
                photo.ai_processing_status = ProcessingStatus.PROCESSING
                photo.error_message = None
                logger.debug(f"Marked photo {photo_id} as processing")

    def mark_done(
        self,
        photo_id: int,
        analysis: str,
        report_type: ReportType | None = None,
        report_content: str | None = None,
    ) -> None:
        """
        Store analysis output and mark a photo as done.

        Args:
            photo_id: ID of the photo record.
            analysis: Vision model analysis text.
            report_type: Kind of drafted report, if any.
            report_content: Drafted report text, if any.
        """
        with session_scope(self._session_factory) as session:
            photo = session.get(Photo, photo_id)
            if photo:
                photo.ai_analysis = analysis
                photo.report_type = report_type
                photo.report_content = report_content
                photo.ai_processed = True
                photo.ai_processing_status = ProcessingStatus.DONE
                photo.processed_at = datetime.utcnow()
                logger.info(f"Marked photo {photo_id} as done")

    def mark_failed(self, photo_id: int, error_message: str) -> None:
        """
        Mark a photo as failed with error details.

        Args:
            photo_id: ID of the photo record.
            error_message: Error description.
        """
        with session_scope(self._session_factory) as session:
            photo = session.get(Photo, photo_id)
            if photo:
                photo.ai_processing_status = ProcessingStatus.FAILED
                photo.error_message = error_message[:1000]  # Truncate if too long
                logger.error(f"Marked photo {photo_id} as failed: {error_message}")

    def get_pending(self, limit: int | None = None) -> list[Photo]:
        """
        Get photos waiting for analysis.

        Args:
            limit: Maximum number to return.

        Returns:
            List of Photo instances with PENDING status.
        """
        return self.repository.get_pending(limit)

    def get_failed(self) -> list[Photo]:
        """Get photos whose analysis failed, with their error messages."""
        return self.repository.get_failed()

    def get_stats(self) -> dict[str, int]:
        """
        Get processing statistics.

        Returns:
            Dictionary with counts by status.
        """
        return {
            "total": self.repository.count(),
            "pending": self.repository.count(ProcessingStatus.PENDING),
            "processing": self.repository.count(ProcessingStatus.PROCESSING),
            "done": self.repository.count(ProcessingStatus.DONE),
            "failed": self.repository.count(ProcessingStatus.FAILED),
        }
