"""
Location and weather enrichment for photos with a known position.

Runs the weather and reverse-geocode lookups independently of each other.
Either may come back unavailable; enrichment never fails an upload.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from integrations.base import EnrichmentResult
from pipeline.coordinates import DecimalCoordinate

logger = logging.getLogger(__name__)

NOT_REQUESTED = EnrichmentResult.unavailable("not requested")


def to_unix_timestamp(captured_at: datetime) -> int:
    """
    Convert a capture time to a unix timestamp.

    Naive datetimes are interpreted in the host's local timezone, the same
    way the camera's wall-clock value was always treated.
    """
    return int(captured_at.timestamp())


@dataclass(frozen=True)
class Enrichment:
    """Results of the enrichment lookups for one photo."""
    weather: EnrichmentResult = field(default=NOT_REQUESTED)
    location: EnrichmentResult = field(default=NOT_REQUESTED)

    @property
    def weather_data(self) -> Any:
        return self.weather.payload_or_none()

    @property
    def geo_data(self) -> Any:
        return self.location.payload_or_none()


class Enricher:
    """
    Looks up weather and address for a photo position.

    Clients are injected; anything with ``fetch_historical(lat, lon, ts)``
    and ``reverse_geocode(lat, lon)`` returning EnrichmentResult works.
    """

    def __init__(self, weather_client, geocoding_client):
        """
        Initialize the enricher.

        Args:
            weather_client: Historical weather provider client.
            geocoding_client: Reverse geocoding provider client.
        """
        self.weather_client = weather_client
        self.geocoding_client = geocoding_client

    def _call(self, label: str, func, *args) -> EnrichmentResult:
        try:
            return func(*args)
        except Exception as e:
            logger.warning(f"{label} lookup failed: {e}")
            return EnrichmentResult.unavailable(f"{label} lookup failed: {e}")

    def _historical_weather(
        self, lat: float, lon: float, captured_at: datetime
    ) -> EnrichmentResult:
        # Out-of-range camera dates raise here and degrade like any other failure
        timestamp = to_unix_timestamp(captured_at)
        return self.weather_client.fetch_historical(lat, lon, timestamp)

    def fetch_weather(self, lat: float, lon: float, captured_at: datetime) -> EnrichmentResult:
        """Historical weather at a position and capture time."""
        return self._call("Weather", self._historical_weather, lat, lon, captured_at)

    def fetch_location(self, lat: float, lon: float) -> EnrichmentResult:
        """Reverse geocode a position."""
        return self._call("Geocode", self.geocoding_client.reverse_geocode, lat, lon)

    def enrich(
        self,
        coordinate: DecimalCoordinate,
        captured_at: datetime | None = None,
    ) -> Enrichment:
        """
        Run the enrichment lookups for one photo.

        Weather is only requested when the capture time is known; the
        geocode lookup always runs.

        Args:
            coordinate: Photo position.
            captured_at: Camera-local capture time, if known.

        Returns:
            Enrichment with one result per lookup.
        """
        with ThreadPoolExecutor(max_workers=2) as executor:
            weather_future = None
            if captured_at is not None:
                weather_future = executor.submit(
                    self.fetch_weather, coordinate.lat, coordinate.lon, captured_at
                )
            location_future = executor.submit(
                self.fetch_location, coordinate.lat, coordinate.lon
            )

            weather = weather_future.result() if weather_future else NOT_REQUESTED
            location = location_future.result()

        logger.debug(
            f"Enriched ({coordinate.lat}, {coordinate.lon}): "
            f"weather={weather.status.value}, location={location.status.value}"
        )
        return Enrichment(weather=weather, location=location)
