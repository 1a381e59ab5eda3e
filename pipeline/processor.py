"""
Photo ingestion orchestrator.

Runs each uploaded file through the pipeline stages:
1. Validation (image type, size ceiling)
2. EXIF extraction
3. Weather / reverse-geocode enrichment (when GPS is known)
4. Location description parsing
5. Upload to object storage
6. Photo record persistence (status pending)
7. Progress reporting

Files in a batch are processed one after another in submission order. A
storage or persistence failure stops the batch at that file; files already
committed stay committed.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from config import DEFAULT_MAX_UPLOAD_BYTES
from db.models import Photo, ProcessingStatus
from integrations.object_storage import StorageUploadError
from pipeline.enricher import Enricher, Enrichment
from pipeline.file_validator import UploadedFile, validate_upload, validate_uploads
from pipeline.location_parser import LocationHint, parse_location_description
from pipeline.metadata_extractor import (
    MetadataExtractor,
    NormalizedExif,
    extract_capture_time,
    extract_gps_coordinates,
)
from pipeline.storage_handler import PersistenceError, PhotoRecord, PhotoStorage

logger = logging.getLogger(__name__)

# Callback(completed, total, percent) invoked after each file
ProgressCallback = Callable[[int, int, float], None]


class BatchUploadError(Exception):
    """
    A file in a batch failed to upload or persist.

    Attributes:
        index: 1-based position of the failing file.
        filename: Name of the failing file.
        message: Underlying error message.
        completed: Results for the files committed before the failure.
    """

    def __init__(
        self,
        index: int,
        filename: str,
        message: str,
        completed: list["IngestResult"],
    ):
        self.index = index
        self.filename = filename
        self.message = message
        self.completed = completed
        super().__init__(f"File {index} ({filename}): {message}")


@dataclass
class IngestResult:
    """Result of ingesting a single file."""
    photo: Photo
    exif: NormalizedExif | None
    location_hint: LocationHint
    enrichment: Enrichment | None = None
    processing_time: float = 0.0


@dataclass
class BatchResult:
    """Results of one upload batch."""
    total: int = 0
    results: list[IngestResult] = field(default_factory=list)
    start_time: datetime = field(default_factory=datetime.utcnow)
    end_time: datetime | None = None

    @property
    def photos(self) -> list[Photo]:
        return [r.photo for r in self.results]

    @property
    def duration_seconds(self) -> float:
        """Get total duration in seconds."""
        if self.end_time:
            return (self.end_time - self.start_time).total_seconds()
        return 0.0

    def summary(self) -> str:
        """Generate summary string."""
        enriched = sum(
            1 for r in self.results
            if r.enrichment and (r.enrichment.weather.available or r.enrichment.location.available)
        )
        lines = [
            "=" * 50,
            "Upload Complete",
            "=" * 50,
            f"Files uploaded: {len(self.results)}/{self.total}",
            f"With EXIF: {sum(1 for r in self.results if r.exif)}",
            f"Enriched: {enriched}",
            f"Duration: {self.duration_seconds:.1f} seconds",
        ]
        return "\n".join(lines)


def progress_percent(completed: int, total: int) -> float:
    return (completed / total) * 100 if total > 0 else 0.0


class PhotoIngestor:
    """
    Ingests uploaded site photos into a project.

    All collaborators are injected so the pipeline can run against fakes:
    object storage, the photo record store, and (optionally) the enricher.
    Without an enricher, photos are stored without weather or geocode data.
    """

    def __init__(
        self,
        object_store,
        photo_storage: PhotoStorage,
        enricher: Enricher | None = None,
        metadata_extractor: MetadataExtractor | None = None,
        bucket: str = "photos",
        max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
        clock: Callable[[], float] = time.time,
        progress_callback: ProgressCallback | None = None,
    ):
        """
        Initialize the ingestor.

        Args:
            object_store: Anything with put_object(bucket, path, data, ...).
            photo_storage: Photo record store.
            enricher: Weather/geocode enricher.
            metadata_extractor: EXIF extractor. Defaults to MetadataExtractor().
            bucket: Object storage bucket for photos.
            max_upload_bytes: Size ceiling per file.
            clock: Returns the current unix time in seconds (for storage names).
            progress_callback: Callback(completed, total, percent) per file.
        """
        self.object_store = object_store
        self.photo_storage = photo_storage
        self.enricher = enricher
        self.metadata_extractor = metadata_extractor or MetadataExtractor()
        self.bucket = bucket
        self.max_upload_bytes = max_upload_bytes
        self.clock = clock
        self.progress_callback = progress_callback

    def storage_path(self, project_id: str, upload: UploadedFile, index: int) -> str:
        """Build the object key: {project_id}/{unix_millis}-{index}.{ext}"""
        millis = int(self.clock() * 1000)
        return f"{project_id}/{millis}-{index}.{upload.extension}"

    def ingest(
        self,
        upload: UploadedFile,
        project_id: str,
        location_description: str = "",
        description: str = "",
        index: int = 0,
        uploaded_by: str | None = None,
    ) -> Photo:
        """
        Ingest a single file.

        Args:
            upload: The uploaded file.
            project_id: Project the photo belongs to.
            location_description: Free-text location, e.g. "4F B區".
            description: Free-text description.
            index: Position in the batch (used in the storage name).
            uploaded_by: Uploading inspector reference.

        Returns:
            The persisted Photo with status pending.

        Raises:
            InvalidInputError: If the file is not an image or too large.
            StorageUploadError: If the upload fails.
            PersistenceError: If the record cannot be saved.
        """
        validate_upload(upload, self.max_upload_bytes)
        result = self._ingest_one(
            upload, project_id, location_description, description, index, uploaded_by
        )
        return result.photo

    def ingest_batch(
        self,
        uploads: list[UploadedFile],
        project_id: str,
        location_description: str = "",
        description: str = "",
        uploaded_by: str | None = None,
    ) -> BatchResult:
        """
        Ingest a batch of files in order.

        The whole selection is validated before the first file is processed.

        Args:
            uploads: Files in submission order.
            project_id: Project the photos belong to.
            location_description: Free-text location shared by the batch.
            description: Free-text description shared by the batch.
            uploaded_by: Uploading inspector reference.

        Returns:
            BatchResult with one IngestResult per file.

        Raises:
            InvalidInputError: If any file fails validation (nothing is processed).
            BatchUploadError: If a file fails to upload or persist; earlier
                files remain committed and later files are not attempted.
        """
        validate_uploads(uploads, self.max_upload_bytes)

        batch = BatchResult(total=len(uploads))
        logger.info(f"Starting upload of {batch.total} file(s) to project {project_id}")

        for i, upload in enumerate(uploads):
            logger.info(f"Processing file {i + 1} of {batch.total}: {upload.filename}")
            try:
                result = self._ingest_one(
                    upload, project_id, location_description, description, i, uploaded_by
                )
            except (StorageUploadError, PersistenceError) as e:
                logger.error(f"Upload error on file {i + 1} ({upload.filename}): {e}")
                raise BatchUploadError(
                    index=i + 1,
                    filename=upload.filename,
                    message=str(e),
                    completed=list(batch.results),
                ) from e

            batch.results.append(result)

            if self.progress_callback:
                completed = len(batch.results)
                self.progress_callback(
                    completed, batch.total, progress_percent(completed, batch.total)
                )

        batch.end_time = datetime.utcnow()
        logger.info(batch.summary())
        return batch

    def _ingest_one(
        self,
        upload: UploadedFile,
        project_id: str,
        location_description: str,
        description: str,
        index: int,
        uploaded_by: str | None,
    ) -> IngestResult:
        start_time = time.time()

        # Stage 2: EXIF
        exif = self.metadata_extractor.extract(upload.data)
        captured_at = extract_capture_time(exif)
        coordinate = extract_gps_coordinates(exif)

        # Stage 3: Enrichment
        enrichment = None
        if coordinate and self.enricher:
            enrichment = self.enricher.enrich(coordinate, captured_at)

        # Stage 4: Location hint
        location_hint = parse_location_description(location_description)

        # Stage 5: Object storage
        path = self.storage_path(project_id, upload, index)
        logger.debug(f"Uploading {upload.filename} to {self.bucket}/{path}")
        try:
            self.object_store.put_object(
                self.bucket, path, upload.data, content_type=upload.content_type
            )
        except StorageUploadError as e:
            raise StorageUploadError(f"Error uploading file: {e}") from e

        # Stage 6: Persistence
        photo = self.photo_storage.create_record(PhotoRecord(
            project_id=project_id,
            storage_path=path,
            original_filename=upload.filename,
            uploaded_by=uploaded_by,
            description=description,
            location_description=location_description,
            exif_data=exif.to_dict() if exif else None,
            weather_data=enrichment.weather_data if enrichment else None,
            geo_data=enrichment.geo_data if enrichment else None,
            taken_at=captured_at,
            ai_processing_status=ProcessingStatus.PENDING,
        ))

        processing_time = time.time() - start_time
        logger.info(
            f"Processed: {upload.filename} (ID: {photo.id}, "
            f"exif={'yes' if exif else 'no'}, floor={location_hint.floor}, "
            f"zone={location_hint.zone}, {processing_time:.2f}s)"
        )

        return IngestResult(
            photo=photo,
            exif=exif,
            location_hint=location_hint,
            enrichment=enrichment,
            processing_time=processing_time,
        )
