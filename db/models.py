"""
SQLAlchemy models for Site Inspector.

Database Schema:
----------------
photos table:
    - id: Primary key, auto-increment
    - project_id: Reference to the inspected project
    - uploaded_by: Reference to the uploading inspector (nullable)
    - storage_path: Object storage path ({project_id}/{millis}-{index}.{ext})
    - original_filename: Filename as uploaded
    - description: Free-text description
    - location_description: Free-text location (e.g. "4F B區")
    - exif_data: Normalized EXIF blob (JSON)
    - weather_data: Weather provider payload (JSON, nullable)
    - geo_data: Reverse geocode payload (JSON, nullable)
    - taken_at: Capture time from EXIF, camera-local wall clock (nullable)
    - ai_processed: Whether the analysis stage has finished
    - ai_processing_status: Status enum (pending, processing, done, failed)
    - ai_analysis: Vision model analysis text
    - report_type: Drafted report kind (ncr, par)
    - report_content: Drafted report text
    - error_message: Error details if analysis failed
    - processed_at: Timestamp when analysis completed
    - created_at: Timestamp when record was created
    - updated_at: Timestamp when record was last updated
"""

from datetime import datetime
from enum import Enum as PyEnum
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


class ProcessingStatus(PyEnum):
    """AI processing status for uploaded photos."""
    PENDING = "pending"
    PROCESSING = "processing"
    DONE = "done"
    FAILED = "failed"


class ReportType(PyEnum):
    """Kind of report drafted from a photo analysis."""
    NCR = "ncr"  # Non-Conformance Report
    PAR = "par"  # Preventive Action Report


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


class Photo(Base):
    """
    SQLAlchemy model for the photos table.

    Stores one uploaded site photo with its EXIF, weather and geocode
    enrichment plus the AI processing status.
    """
    __tablename__ = "photos"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Ownership
    project_id: Mapped[str] = mapped_column(String(64), nullable=False)
    uploaded_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    # File information
    storage_path: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    original_filename: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Inspector input
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    location_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Enrichment
    exif_data: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONType, nullable=True)
    weather_data: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONType, nullable=True)
    geo_data: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONType, nullable=True)
    taken_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # AI processing
    ai_processed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    ai_processing_status: Mapped[ProcessingStatus] = mapped_column(
        Enum(ProcessingStatus, name="ai_processing_status_enum"),
        nullable=False,
        default=ProcessingStatus.PENDING
    )
    ai_analysis: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    report_type: Mapped[Optional[ReportType]] = mapped_column(
        Enum(ReportType, name="report_type_enum"),
        nullable=True
    )
    report_content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        server_default=func.now(),
        onupdate=func.now()
    )

    # Indexes for frequently queried columns
    __table_args__ = (
        Index("idx_photos_project_id", "project_id"),
        Index("idx_photos_ai_processing_status", "ai_processing_status"),
        Index("idx_photos_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<Photo(id={self.id}, storage_path='{self.storage_path}', "
            f"status={self.ai_processing_status.value})>"
        )

    def to_dict(self) -> dict:
        """Convert model to dictionary for serialization."""
        return {
            "id": self.id,
            "project_id": self.project_id,
            "uploaded_by": self.uploaded_by,
            "storage_path": self.storage_path,
            "original_filename": self.original_filename,
            "description": self.description,
            "location_description": self.location_description,
            "exif_data": self.exif_data,
            "weather_data": self.weather_data,
            "geo_data": self.geo_data,
            "taken_at": self.taken_at.isoformat() if self.taken_at else None,
            "ai_processed": self.ai_processed,
            "ai_processing_status": self.ai_processing_status.value,
            "ai_analysis": self.ai_analysis,
            "report_type": self.report_type.value if self.report_type else None,
            "report_content": self.report_content,
            "error_message": self.error_message,
            "processed_at": self.processed_at.isoformat() if self.processed_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
