"""Tests for the photo ingestion orchestrator."""

import re
from datetime import datetime

import pytest

from conftest import FakeWeatherClient, full_exif, gps_ifd, make_jpeg
from db.models import ProcessingStatus
from db.operations import PhotoRepository
from integrations.base import EnrichmentResult
from integrations.object_storage import StorageUploadError
from pipeline.enricher import Enricher
from pipeline.file_validator import InvalidInputError, UploadedFile
from pipeline.processor import BatchUploadError, PhotoIngestor, progress_percent
from pipeline.storage_handler import PersistenceError

PROJECT_ID = "proj-42"
FIXED_CLOCK = 1710469800.123


class FailingObjectStore:
    """Wraps a real store and fails the Nth put_object call (1-based)."""

    def __init__(self, store, fail_on: int):
        self.store = store
        self.fail_on = fail_on
        self.calls = 0

    def put_object(self, bucket, path, data, content_type=None, upsert=False):
        self.calls += 1
        if self.calls == self.fail_on:
            raise StorageUploadError("connection reset by peer")
        return self.store.put_object(bucket, path, data, content_type, upsert)


@pytest.fixture
def enricher(fake_weather, fake_geocoder):
    return Enricher(fake_weather, fake_geocoder)


@pytest.fixture
def ingestor(object_store, photo_storage, enricher):
    return PhotoIngestor(
        object_store=object_store,
        photo_storage=photo_storage,
        enricher=enricher,
        clock=lambda: FIXED_CLOCK,
    )


@pytest.fixture
def repository(session_factory):
    return PhotoRepository(session_factory)


# =============================================================================
# SINGLE FILE
# =============================================================================

def test_ingest_photo_with_gps(ingestor, object_store, gps_jpeg, fake_weather, fake_geocoder):
    upload = UploadedFile("IMG_0001.JPG", gps_jpeg)

    photo = ingestor.ingest(
        upload,
        PROJECT_ID,
        location_description="4F B區",
        description="Cracked slab edge",
        uploaded_by="inspector-7",
    )

    assert photo.id is not None
    assert photo.project_id == PROJECT_ID
    assert photo.storage_path == f"{PROJECT_ID}/1710469800123-0.jpg"
    assert photo.original_filename == "IMG_0001.JPG"
    assert photo.location_description == "4F B區"
    assert photo.description == "Cracked slab edge"
    assert photo.uploaded_by == "inspector-7"
    assert photo.ai_processed is False
    assert photo.ai_processing_status is ProcessingStatus.PENDING

    assert photo.exif_data["make"] == "Canon"
    assert photo.exif_data["gps"]["latitude"] == "25 deg 2' 12\" N"
    assert photo.weather_data == {"data": [{"temp": 21.5}]}
    assert photo.geo_data["formatted_address"].startswith("No. 7")
    assert photo.taken_at == datetime(2024, 3, 15, 10, 30, 0)
    assert photo.to_dict()["taken_at"] == "2024-03-15T10:30:00"

    assert len(fake_weather.calls) == 1
    assert len(fake_geocoder.calls) == 1
    assert object_store.get_object("photos", photo.storage_path) == gps_jpeg


def test_storage_path_format(object_store, photo_storage, plain_jpeg):
    ingestor = PhotoIngestor(object_store, photo_storage)
    photo = ingestor.ingest(UploadedFile("site.png", plain_jpeg), PROJECT_ID, index=3)

    assert re.fullmatch(rf"{PROJECT_ID}/\d+-3\.png", photo.storage_path)


def test_weather_unavailable_still_persists(
    object_store, photo_storage, fake_geocoder, gps_jpeg
):
    weather = FakeWeatherClient(EnrichmentResult.unavailable("weather request timed out"))
    ingestor = PhotoIngestor(object_store, photo_storage, Enricher(weather, fake_geocoder))

    photo = ingestor.ingest(UploadedFile("a.jpg", gps_jpeg), PROJECT_ID)

    assert photo.weather_data is None
    assert photo.geo_data is not None
    assert photo.exif_data is not None
    assert photo.ai_processing_status is ProcessingStatus.PENDING


def test_photo_without_gps_skips_enrichment(ingestor, fake_weather, fake_geocoder):
    data = make_jpeg(full_exif())
    photo = ingestor.ingest(UploadedFile("nogps.jpg", data), PROJECT_ID)

    assert fake_weather.calls == []
    assert fake_geocoder.calls == []
    assert photo.weather_data is None
    assert photo.geo_data is None
    assert photo.taken_at == datetime(2024, 3, 15, 10, 30, 0)


def test_photo_without_exif(ingestor, plain_jpeg, fake_geocoder):
    photo = ingestor.ingest(UploadedFile("plain.jpg", plain_jpeg), PROJECT_ID)

    assert photo.exif_data is None
    assert photo.taken_at is None
    assert fake_geocoder.calls == []
    assert photo.ai_processing_status is ProcessingStatus.PENDING


def test_ingestor_without_enricher(object_store, photo_storage, gps_jpeg):
    photo = PhotoIngestor(object_store, photo_storage).ingest(
        UploadedFile("a.jpg", gps_jpeg), PROJECT_ID
    )
    assert photo.exif_data is not None
    assert photo.weather_data is None
    assert photo.geo_data is None


@pytest.mark.parametrize("upload", [
    UploadedFile("notes.txt", b"hello"),
    UploadedFile("report.pdf", b"%PDF-1.4"),
])
def test_non_image_is_rejected(ingestor, repository, upload):
    with pytest.raises(InvalidInputError, match="Only image files"):
        ingestor.ingest(upload, PROJECT_ID)
    assert repository.count() == 0


def test_oversized_file_is_rejected(object_store, photo_storage, gps_jpeg, repository):
    ingestor = PhotoIngestor(object_store, photo_storage, max_upload_bytes=100)

    with pytest.raises(InvalidInputError, match="too large"):
        ingestor.ingest(UploadedFile("big.jpg", gps_jpeg), PROJECT_ID)
    assert repository.count() == 0


# =============================================================================
# BATCHES
# =============================================================================

def test_batch_is_processed_in_order(ingestor, repository, gps_jpeg, plain_jpeg):
    uploads = [
        UploadedFile("first.jpg", gps_jpeg),
        UploadedFile("second.jpg", plain_jpeg),
        UploadedFile("third.jpeg", gps_jpeg),
    ]

    batch = ingestor.ingest_batch(uploads, PROJECT_ID, location_description="2F A區")

    assert batch.total == 3
    assert [p.original_filename for p in batch.photos] == ["first.jpg", "second.jpg", "third.jpeg"]
    assert [p.storage_path for p in batch.photos] == [
        f"{PROJECT_ID}/1710469800123-0.jpg",
        f"{PROJECT_ID}/1710469800123-1.jpg",
        f"{PROJECT_ID}/1710469800123-2.jpeg",
    ]
    assert batch.results[0].location_hint.floor == "2"
    assert batch.results[0].location_hint.zone == "A"
    assert batch.end_time is not None
    assert "Files uploaded: 3/3" in batch.summary()

    stored = repository.get_by_project(PROJECT_ID)
    assert [p.id for p in stored] == [p.id for p in batch.photos]
    assert all(p.location_description == "2F A區" for p in stored)


def test_batch_stops_at_failing_file(object_store, photo_storage, repository, gps_jpeg):
    failing_store = FailingObjectStore(object_store, fail_on=2)
    ingestor = PhotoIngestor(failing_store, photo_storage)
    uploads = [UploadedFile(f"photo{i}.jpg", gps_jpeg) for i in range(1, 4)]

    with pytest.raises(BatchUploadError) as exc_info:
        ingestor.ingest_batch(uploads, PROJECT_ID)

    error = exc_info.value
    assert error.index == 2
    assert error.filename == "photo2.jpg"
    assert "File 2" in str(error)
    assert "connection reset by peer" in str(error)
    assert len(error.completed) == 1
    assert isinstance(error.__cause__, StorageUploadError)

    # File 1 stays committed, file 3 is never attempted
    assert repository.count() == 1
    assert failing_store.calls == 2


def test_batch_validates_whole_selection_first(ingestor, repository, object_store, gps_jpeg):
    uploads = [
        UploadedFile("ok.jpg", gps_jpeg),
        UploadedFile("readme.txt", b"not an image"),
    ]

    with pytest.raises(InvalidInputError):
        ingestor.ingest_batch(uploads, PROJECT_ID)

    assert repository.count() == 0
    assert not (object_store.root / "photos" / PROJECT_ID).exists()


def test_batch_progress_reports_each_file(object_store, photo_storage, plain_jpeg):
    progress = []
    ingestor = PhotoIngestor(
        object_store,
        photo_storage,
        progress_callback=lambda done, total, pct: progress.append((done, total, pct)),
    )
    uploads = [UploadedFile(f"p{i}.jpg", plain_jpeg) for i in range(3)]

    ingestor.ingest_batch(uploads, PROJECT_ID)

    assert [(done, total) for done, total, _ in progress] == [(1, 3), (2, 3), (3, 3)]
    assert [pct for _, _, pct in progress] == pytest.approx([33.333, 66.667, 100.0], abs=0.01)


def test_empty_batch(ingestor):
    batch = ingestor.ingest_batch([], PROJECT_ID)
    assert batch.total == 0
    assert batch.photos == []


def test_progress_percent():
    assert progress_percent(0, 0) == 0.0
    assert progress_percent(1, 4) == 25.0


class FailingPhotoStorage:
    """Wraps a real PhotoStorage and fails the Nth create_record call (1-based)."""

    def __init__(self, photo_storage, fail_on: int):
        self.photo_storage = photo_storage
        self.fail_on = fail_on
        self.calls = 0

    def create_record(self, record):
        self.calls += 1
        if self.calls == self.fail_on:
            raise PersistenceError("Error saving photo data: database is locked")
        return self.photo_storage.create_record(record)


def test_batch_stops_when_record_cannot_be_saved(
    object_store, photo_storage, repository, plain_jpeg
):
    failing_storage = FailingPhotoStorage(photo_storage, fail_on=2)
    ingestor = PhotoIngestor(object_store, failing_storage)
    uploads = [UploadedFile(f"photo{i}.jpg", plain_jpeg) for i in range(1, 4)]

    with pytest.raises(BatchUploadError) as exc_info:
        ingestor.ingest_batch(uploads, PROJECT_ID)

    error = exc_info.value
    assert error.index == 2
    assert error.filename == "photo2.jpg"
    assert "database is locked" in str(error)
    assert isinstance(error.__cause__, PersistenceError)
    assert [r.photo.original_filename for r in error.completed] == ["photo1.jpg"]

    # File 2's object was written before the insert failed; file 3 never starts
    assert repository.count() == 1
    assert failing_storage.calls == 2
    assert len(list((object_store.root / "photos" / PROJECT_ID).iterdir())) == 2


def test_out_of_range_capture_date_does_not_abort_batch(
    ingestor, repository, plain_jpeg, fake_geocoder
):
    unset_clock = make_jpeg(full_exif(
        date_time_original=b"0001:01:01 00:00:00",
        gps=gps_ifd(),
    ))
    uploads = [
        UploadedFile("before.jpg", plain_jpeg),
        UploadedFile("unset-clock.jpg", unset_clock),
        UploadedFile("after.jpg", plain_jpeg),
    ]

    batch = ingestor.ingest_batch(uploads, PROJECT_ID)

    assert repository.count() == 3
    photo = batch.photos[1]
    assert photo.taken_at == datetime(1, 1, 1, 0, 0, 0)
    assert photo.geo_data is not None
    assert photo.ai_processing_status is ProcessingStatus.PENDING
    assert len(fake_geocoder.calls) == 1
