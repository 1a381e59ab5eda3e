"""
Metadata extraction module for uploaded photos.

Decodes the EXIF block embedded in raw image bytes and normalizes it:
- Capture date/time (DateTimeOriginal preferred over DateTime)
- GPS position as DMS descriptions plus signed decimal degrees
- Camera make/model
- Pixel dimensions

Extraction is best-effort: bytes without a readable EXIF block give None,
never an exception.
"""

import io
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import piexif
from PIL import Image, UnidentifiedImageError

from pipeline.coordinates import DecimalCoordinate, dms_to_decimal, format_dms

logger = logging.getLogger(__name__)

# IFDs that carry capture tags, mapped to their piexif.TAGS table
# (thumbnail and interop are ignored)
TAG_IFDS = {"0th": "Image", "Exif": "Exif", "GPS": "GPS"}

EXIF_DATE_FORMATS = ("%Y:%m:%d %H:%M:%S", "%Y-%m-%d %H:%M:%S")


@dataclass(frozen=True)
class ExifTag:
    """One decoded tag: the raw piexif value and a readable description."""
    value: Any
    description: str


# Tag name -> decoded tag, as produced by read_tags()
RawMetadataTagSet = dict[str, ExifTag]


@dataclass(frozen=True)
class GpsInfo:
    """GPS position as recorded, plus decimal degrees when convertible."""
    latitude: str
    longitude: str
    latitude_decimal: float | None = None
    longitude_decimal: float | None = None


@dataclass(frozen=True)
class Dimensions:
    width: int
    height: int


@dataclass(frozen=True)
class NormalizedExif:
    """Container for the EXIF fields the pipeline cares about."""
    date_time_original: str | None = None
    date_time: str | None = None
    gps: GpsInfo | None = None
    make: str | None = None
    model: str | None = None
    dimensions: Dimensions | None = None

    def is_empty(self) -> bool:
        return not any((
            self.date_time_original,
            self.date_time,
            self.gps,
            self.make,
            self.model,
            self.dimensions,
        ))

    def to_dict(self) -> dict[str, Any]:
        """Convert to the JSON blob stored on the photo record."""
        data: dict[str, Any] = {}
        if self.date_time_original:
            data["dateTimeOriginal"] = self.date_time_original
        if self.date_time:
            data["dateTime"] = self.date_time
        if self.gps:
            gps: dict[str, Any] = {
                "latitude": self.gps.latitude,
                "longitude": self.gps.longitude,
            }
            if self.gps.latitude_decimal is not None:
                gps["latitudeDecimal"] = self.gps.latitude_decimal
                gps["longitudeDecimal"] = self.gps.longitude_decimal
            data["gps"] = gps
        if self.make:
            data["make"] = self.make
        if self.model:
            data["model"] = self.model
        if self.dimensions:
            data["dimensions"] = {
                "width": self.dimensions.width,
                "height": self.dimensions.height,
            }
        return data


def _decode_exif_string(value: bytes | str | None) -> str | None:
    """Decode EXIF string value."""
    if value is None:
        return None
    if isinstance(value, bytes):
        try:
            text = value.decode("utf-8")
        except UnicodeDecodeError:
            text = value.decode("latin-1")
        return text.rstrip("\x00").strip() or None
    return str(value).strip() or None


def _read_exif_block(data: bytes) -> bytes | None:
    """Pull the raw EXIF block out of image bytes using Pillow."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            exif_bytes = img.info.get("exif")
            if exif_bytes:
                return exif_bytes
            # TIFF keeps its tags in the file header instead of info["exif"]
            if img.format == "TIFF":
                return data
    except (UnidentifiedImageError, OSError, ValueError) as e:
        logger.debug(f"Could not open image: {e}")
    return None


def read_tags(data: bytes) -> RawMetadataTagSet | None:
    """
    Decode the EXIF block of an image into a tag-name mapping.

    Args:
        data: Raw bytes of the image file.

    Returns:
        Mapping of tag name to ExifTag, or None if there is no EXIF block.
    """
    exif_bytes = _read_exif_block(data)
    if not exif_bytes:
        return None

    exif_dict = piexif.load(exif_bytes)
    gps_ifd = exif_dict.get("GPS") or {}

    tags: RawMetadataTagSet = {}
    for ifd_name, table in TAG_IFDS.items():
        for tag_id, value in (exif_dict.get(ifd_name) or {}).items():
            tag_info = piexif.TAGS.get(table, {}).get(tag_id)
            if not tag_info:
                continue
            name = tag_info["name"]

            if name == "GPSLatitude":
                description = format_dms(value, gps_ifd.get(piexif.GPSIFD.GPSLatitudeRef))
            elif name == "GPSLongitude":
                description = format_dms(value, gps_ifd.get(piexif.GPSIFD.GPSLongitudeRef))
            elif isinstance(value, bytes):
                description = _decode_exif_string(value)
            else:
                description = str(value)

            tags[name] = ExifTag(value=value, description=description or "")

    return tags


def _dimensions_from_tags(tags: RawMetadataTagSet) -> Dimensions | None:
    for width_name, height_name in (
        ("PixelXDimension", "PixelYDimension"),
        ("ImageWidth", "ImageLength"),
    ):
        width = tags.get(width_name)
        height = tags.get(height_name)
        if width and height:
            try:
                return Dimensions(width=int(width.value), height=int(height.value))
            except (TypeError, ValueError):
                continue
    return None


def normalize_tags(tags: RawMetadataTagSet) -> NormalizedExif | None:
    """
    Reduce a raw tag set to the fields the pipeline uses.

    Args:
        tags: Output of read_tags().

    Returns:
        NormalizedExif, or None if none of the relevant tags are present.
    """
    date_time_original = None
    date_time = None
    if "DateTimeOriginal" in tags:
        date_time_original = tags["DateTimeOriginal"].description or None
    elif "DateTime" in tags:
        date_time = tags["DateTime"].description or None

    gps = None
    if "GPSLatitude" in tags and "GPSLongitude" in tags:
        latitude = tags["GPSLatitude"].description
        longitude = tags["GPSLongitude"].description
        lat_decimal = dms_to_decimal(latitude)
        lon_decimal = dms_to_decimal(longitude)
        if lat_decimal is None or lon_decimal is None:
            logger.debug(f"Keeping undecodable GPS position: {latitude}, {longitude}")
            lat_decimal = lon_decimal = None
        gps = GpsInfo(
            latitude=latitude,
            longitude=longitude,
            latitude_decimal=lat_decimal,
            longitude_decimal=lon_decimal,
        )

    make = tags["Make"].description if "Make" in tags else None
    model = tags["Model"].description if "Model" in tags else None

    exif = NormalizedExif(
        date_time_original=date_time_original,
        date_time=date_time,
        gps=gps,
        make=make,
        model=model,
        dimensions=_dimensions_from_tags(tags),
    )
    return None if exif.is_empty() else exif


class MetadataExtractor:
    """
    Extracts normalized EXIF metadata from raw image bytes.

    Stateless; the same bytes always give the same result.
    """

    def extract(self, data: bytes) -> NormalizedExif | None:
        """
        Extract EXIF metadata from an image.

        Args:
            data: Raw bytes of the uploaded file (any format).

        Returns:
            NormalizedExif, or None when no metadata is available.
        """
        try:
            tags = read_tags(data)
            if not tags:
                logger.debug("No EXIF block found")
                return None
            return normalize_tags(tags)
        except Exception as e:
            logger.debug(f"Error extracting EXIF data: {e}")
            return None


def extract_exif(data: bytes) -> NormalizedExif | None:
    """
    Convenience function to extract EXIF metadata from image bytes.

    Args:
        data: Raw bytes of the image file.

    Returns:
        NormalizedExif or None.
    """
    extractor = MetadataExtractor()
    return extractor.extract(data)


def parse_exif_date(date_str: str) -> datetime | None:
    """
    Parse an EXIF date string as a naive, camera-local datetime.

    Args:
        date_str: e.g. "2024:03:15 10:30:00".

    Returns:
        datetime without tzinfo, or None if the string does not parse.
    """
    for fmt in EXIF_DATE_FORMATS:
        try:
            return datetime.strptime(date_str.strip(), fmt)
        except ValueError:
            continue
    logger.debug(f"Could not parse date: {date_str}")
    return None


def extract_capture_time(exif: NormalizedExif | None) -> datetime | None:
    """
    Get the capture time recorded in EXIF.

    The value is the camera's wall-clock time; no timezone is applied.

    Args:
        exif: Normalized EXIF or None.

    Returns:
        Naive datetime, or None.
    """
    if exif is None:
        return None
    date_str = exif.date_time_original or exif.date_time
    if not date_str:
        return None
    return parse_exif_date(date_str)


def extract_gps_coordinates(exif: NormalizedExif | None) -> DecimalCoordinate | None:
    """
    Get the decimal GPS position recorded in EXIF.

    Args:
        exif: Normalized EXIF or None.

    Returns:
        DecimalCoordinate, or None when unknown or out of range.
    """
    if exif is None or exif.gps is None:
        return None

    lat = exif.gps.latitude_decimal
    lon = exif.gps.longitude_decimal
    if lat is None or lon is None:
        return None

    try:
        return DecimalCoordinate(lat=lat, lon=lon)
    except ValueError as e:
        logger.debug(f"Discarding GPS position: {e}")
        return None
