"""
Google Maps Geocoding client.

Reverse geocodes photo positions and forward geocodes free-text addresses.
"""

import logging

from integrations.base import EnrichmentResult, ProviderClient
from pipeline.coordinates import DecimalCoordinate

logger = logging.getLogger(__name__)


class GoogleGeocodingClient(ProviderClient):
    """Client for the Google Maps Geocoding API."""

    provider_name = "Google Maps"
    api_key_env = "GOOGLE_MAPS_API_KEY"

    GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"

    def _first_result(self, result: EnrichmentResult) -> EnrichmentResult:
        if not result.available:
            return result

        body = result.payload if isinstance(result.payload, dict) else {}
        status = body.get("status")
        results = body.get("results") or []
        if status != "OK" or not results:
            reason = f"{self.provider_name} geocode returned status {status}"
            logger.debug(reason)
            return EnrichmentResult.unavailable(reason)

        return EnrichmentResult.success(results[0])

    def reverse_geocode(self, lat: float, lon: float) -> EnrichmentResult:
        """
        Look up the address at a position.

        Args:
            lat: Latitude in decimal degrees.
            lon: Longitude in decimal degrees.

        Returns:
            EnrichmentResult whose payload is the first geocode result.
        """
        logger.debug(f"Reverse geocoding ({lat}, {lon})")
        result = self._get_json(
            self.GEOCODE_URL,
            {"latlng": f"{lat},{lon}", "key": self.api_key},
        )
        return self._first_result(result)

    def geocode_address(self, address: str) -> EnrichmentResult:
        """
        Look up the position of an address.

        Args:
            address: Free-text address.

        Returns:
            EnrichmentResult whose payload is a DecimalCoordinate.
        """
        logger.debug(f"Geocoding address {address!r}")
        result = self._first_result(
            self._get_json(self.GEOCODE_URL, {"address": address, "key": self.api_key})
        )
        if not result.available:
            return result

        try:
            location = result.payload["geometry"]["location"]
            return EnrichmentResult.success(
                DecimalCoordinate(lat=float(location["lat"]), lon=float(location["lng"]))
            )
        except (KeyError, TypeError, ValueError) as e:
            reason = f"{self.provider_name} geocode result has no usable location: {e}"
            logger.warning(reason)
            return EnrichmentResult.unavailable(reason)
