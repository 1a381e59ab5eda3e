"""
Durable object storage for uploaded photos.

Objects live at {root}/{bucket}/{path} on the local filesystem. The
put/get interface mirrors a bucket-style object store so a cloud backend
can replace it without touching the pipeline.
"""

import logging
from pathlib import Path, PurePosixPath

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Base exception for object storage errors."""
    pass


class StorageUploadError(StorageError):
    """Writing an object failed."""
    pass


class ObjectNotFoundError(StorageError):
    """A requested object does not exist."""
    pass


class LocalObjectStore:
    """
    Filesystem-backed object store.

    Attributes:
        root: Directory holding one subdirectory per bucket.
        public_base_url: Optional URL prefix used by public_url().
    """

    def __init__(self, root: str | Path = "storage", public_base_url: str | None = None):
        """
        Initialize the object store.

        Args:
            root: Root directory; created if it doesn't exist.
            public_base_url: Prefix for public object URLs.

        Raises:
            StorageError: If the root directory cannot be created.
        """
        self.root = Path(root)
        self.public_base_url = public_base_url.rstrip("/") if public_base_url else None

        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create storage directory at {self.root}: {e}")

        logger.info(f"Object storage initialized at: {self.root}")

    def _object_path(self, bucket: str, path: str) -> Path:
        key = PurePosixPath(path)
        if key.is_absolute() or ".." in key.parts or not key.parts:
            raise StorageError(f"Invalid object path: {path!r}")
        return self.root / bucket / Path(*key.parts)

    def put_object(
        self,
        bucket: str,
        path: str,
        data: bytes,
        content_type: str | None = None,
        upsert: bool = False,
    ) -> str:
        """
        Store an object.

        Args:
            bucket: Bucket name.
            path: Object key, e.g. "{project_id}/{millis}-{index}.jpg".
            data: Object bytes.
            content_type: MIME type (logged only; the filesystem keeps none).
            upsert: Overwrite an existing object instead of failing.

        Returns:
            The object key.

        Raises:
            StorageUploadError: If the object exists (without upsert) or the
                write fails.
        """
        try:
            target = self._object_path(bucket, path)
        except StorageError as e:
            raise StorageUploadError(str(e))

        if target.exists() and not upsert:
            raise StorageUploadError(f"The resource already exists: {bucket}/{path}")

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as e:
            raise StorageUploadError(f"Failed to write {bucket}/{path}: {e}")

        logger.debug(f"Stored {bucket}/{path} ({len(data)} bytes, {content_type or 'unknown type'})")
        return path

    def get_object(self, bucket: str, path: str) -> bytes:
        """
        Read an object.

        Raises:
            ObjectNotFoundError: If the object does not exist.
        """
        target = self._object_path(bucket, path)
        if not target.is_file():
            raise ObjectNotFoundError(f"Object not found: {bucket}/{path}")
        return target.read_bytes()

    def public_url(self, bucket: str, path: str) -> str:
        """
        Get a URL for an object.

        Returns:
            ``{public_base_url}/{bucket}/{path}`` when a base URL is configured,
            otherwise a file:// URI.
        """
        if self.public_base_url:
            return f"{self.public_base_url}/{bucket}/{path}"
        return self._object_path(bucket, path).resolve().as_uri()
