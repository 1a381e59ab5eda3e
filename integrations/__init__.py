"""
External service integrations for Site Inspector.

Provides clients for the weather and geocoding providers used to enrich
photos, and the object store that holds uploaded files.
"""

from integrations.base import EnrichmentResult, ResultStatus
from integrations.geocoding import GoogleGeocodingClient
from integrations.object_storage import (
    LocalObjectStore,
    ObjectNotFoundError,
    StorageError,
    StorageUploadError,
)
from integrations.weather import OpenWeatherClient

__all__ = [
    "EnrichmentResult",
    "ResultStatus",
    "GoogleGeocodingClient",
    "OpenWeatherClient",
    "LocalObjectStore",
    "ObjectNotFoundError",
    "StorageError",
    "StorageUploadError",
]
