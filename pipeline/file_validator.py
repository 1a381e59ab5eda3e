"""
Upload validation for incoming photos.

Checks that each selected file is an image and within the size ceiling
before any processing happens.
"""

import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path

from config import DEFAULT_MAX_UPLOAD_BYTES

logger = logging.getLogger(__name__)

# Supported image extensions
IMAGE_EXTENSIONS = {
    ".jpg", ".jpeg", ".png", ".gif", ".bmp",
    ".tiff", ".tif", ".webp", ".heic", ".heif"
}


class InvalidInputError(ValueError):
    """Raised when an upload is not an image or is too large."""
    pass


@dataclass(frozen=True)
class UploadedFile:
    """
    One file selected for upload.

    Attributes:
        filename: Original filename (used for the storage extension).
        data: File contents.
        content_type: MIME type; guessed from the filename when not given.
    """
    filename: str
    data: bytes
    content_type: str | None = None

    def __post_init__(self) -> None:
        if self.content_type is None:
            guessed, _ = mimetypes.guess_type(self.filename)
            object.__setattr__(self, "content_type", guessed)

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def extension(self) -> str:
        """Lowercase extension without the dot, e.g. "jpg"."""
        suffix = Path(self.filename).suffix.lstrip(".").lower()
        if suffix:
            return suffix
        guessed = mimetypes.guess_extension(self.content_type or "") or ".bin"
        return guessed.lstrip(".")

    @classmethod
    def from_path(cls, filepath: str | Path) -> "UploadedFile":
        """
        Load an upload from disk.

        Raises:
            FileNotFoundError: If file doesn't exist.
        """
        filepath = Path(filepath)
        if not filepath.is_file():
            raise FileNotFoundError(f"File not found: {filepath}")
        return cls(filename=filepath.name, data=filepath.read_bytes())


def is_image(upload: UploadedFile) -> bool:
    """Check the content type, falling back to the extension."""
    if upload.content_type:
        return upload.content_type.startswith("image/")
    return Path(upload.filename).suffix.lower() in IMAGE_EXTENSIONS


def validate_upload(
    upload: UploadedFile,
    max_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
) -> None:
    """
    Reject non-image or oversized uploads.

    Args:
        upload: File to check.
        max_bytes: Size ceiling in bytes.

    Raises:
        InvalidInputError: If the file is not an image or is too large.
    """
    if not is_image(upload):
        raise InvalidInputError(
            f"Only image files are allowed: {upload.filename} "
            f"({upload.content_type or 'unknown type'})"
        )

    if upload.size > max_bytes:
        raise InvalidInputError(
            f"File too large: {upload.filename} ({upload.size} bytes, "
            f"limit {max_bytes} bytes)"
        )


def validate_uploads(
    uploads: list[UploadedFile],
    max_bytes: int = DEFAULT_MAX_UPLOAD_BYTES,
) -> None:
    """
    Validate a whole selection before any file is processed.

    Raises:
        InvalidInputError: On the first invalid file.
    """
    for upload in uploads:
        validate_upload(upload, max_bytes)
    logger.debug(f"Validated {len(uploads)} upload(s)")
