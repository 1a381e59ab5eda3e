"""
Shared fixtures for the Site Inspector test suite.

Provides an in-memory SQLite database, a temporary object store, JPEG
builders with real EXIF blocks, and fake provider clients.
"""

import io
import os

import piexif
import pytest
from PIL import Image
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

# Keep a developer's .env credentials out of the tests
os.environ.setdefault("OPENWEATHER_API_KEY", "test-weather-key")
os.environ.setdefault("GOOGLE_MAPS_API_KEY", "test-maps-key")

from db.database import create_session_factory, init_db  # noqa: E402
from integrations.base import EnrichmentResult  # noqa: E402
from integrations.object_storage import LocalObjectStore  # noqa: E402
from pipeline.storage_handler import PhotoStorage  # noqa: E402


# =============================================================================
# IMAGE BUILDERS
# =============================================================================

def to_rational(value: float, precision: int = 100) -> tuple[int, int]:
    return (int(round(value * precision)), precision)


def gps_ifd(
    lat: tuple[float, float, float] = (25, 2, 12),
    lat_ref: bytes = b"N",
    lon: tuple[float, float, float] = (121, 33, 54),
    lon_ref: bytes = b"E",
) -> dict:
    """GPS IFD in piexif form."""
    return {
        piexif.GPSIFD.GPSLatitudeRef: lat_ref,
        piexif.GPSIFD.GPSLatitude: tuple(to_rational(v) for v in lat),
        piexif.GPSIFD.GPSLongitudeRef: lon_ref,
        piexif.GPSIFD.GPSLongitude: tuple(to_rational(v) for v in lon),
    }


def make_jpeg(
    exif: dict | None = None,
    size: tuple[int, int] = (64, 48),
    color: str = "gray",
) -> bytes:
    """Encode a small JPEG, optionally carrying an EXIF block."""
    img = Image.new("RGB", size, color=color)
    buffer = io.BytesIO()
    if exif is None:
        img.save(buffer, format="JPEG")
    else:
        img.save(buffer, format="JPEG", exif=piexif.dump(exif))
    return buffer.getvalue()


def full_exif(
    date_time_original: bytes | None = b"2024:03:15 10:30:00",
    date_time: bytes | None = None,
    gps: dict | None = None,
) -> dict:
    """A camera-like EXIF dict with make/model, dimensions and dates."""
    zeroth = {
        piexif.ImageIFD.Make: b"Canon",
        piexif.ImageIFD.Model: b"Canon EOS R6",
    }
    if date_time:
        zeroth[piexif.ImageIFD.DateTime] = date_time

    exif_ifd = {
        piexif.ExifIFD.PixelXDimension: 64,
        piexif.ExifIFD.PixelYDimension: 48,
    }
    if date_time_original:
        exif_ifd[piexif.ExifIFD.DateTimeOriginal] = date_time_original

    return {"0th": zeroth, "Exif": exif_ifd, "GPS": gps or {}, "1st": {}, "thumbnail": None}


@pytest.fixture
def plain_jpeg() -> bytes:
    return make_jpeg()


@pytest.fixture
def gps_jpeg() -> bytes:
    return make_jpeg(full_exif(gps=gps_ifd()))


# =============================================================================
# DATABASE / STORAGE FIXTURES
# =============================================================================

@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    assert init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def photo_storage(session_factory) -> PhotoStorage:
    return PhotoStorage(session_factory)


@pytest.fixture
def object_store(tmp_path) -> LocalObjectStore:
    return LocalObjectStore(tmp_path / "storage")


# =============================================================================
# FAKE PROVIDERS
# =============================================================================

class FakeWeatherClient:
    def __init__(self, result: EnrichmentResult | None = None):
        self.result = result or EnrichmentResult.success({"data": [{"temp": 21.5}]})
        self.calls = []

    def fetch_historical(self, lat, lon, timestamp):
        self.calls.append((lat, lon, timestamp))
        return self.result


class FakeGeocodingClient:
    def __init__(self, result: EnrichmentResult | None = None):
        self.result = result or EnrichmentResult.success(
            {"formatted_address": "No. 7, Section 5, Xinyi Road, Taipei"}
        )
        self.calls = []

    def reverse_geocode(self, lat, lon):
        self.calls.append((lat, lon))
        return self.result


@pytest.fixture
def fake_weather() -> FakeWeatherClient:
    return FakeWeatherClient()


@pytest.fixture
def fake_geocoder() -> FakeGeocodingClient:
    return FakeGeocodingClient()
