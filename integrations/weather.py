"""
OpenWeather client.

Looks up historical weather for the time a photo was taken, and current
weather for a position. Payloads are passed through unchanged.
"""

import logging

from integrations.base import EnrichmentResult, ProviderClient

logger = logging.getLogger(__name__)


class OpenWeatherClient(ProviderClient):
    """
    Client for the OpenWeather One Call and Current Weather APIs.

    Usage:
        client = OpenWeatherClient(api_key=settings.openweather_api_key)
        result = client.fetch_historical(25.033, 121.565, 1710469800)
        if result.available:
            print(result.payload["data"][0]["weather"])
    """

    provider_name = "OpenWeather"
    api_key_env = "OPENWEATHER_API_KEY"

    HISTORICAL_URL = "https://api.openweathermap.org/data/3.0/onecall/timemachine"
    CURRENT_URL = "https://api.openweathermap.org/data/2.5/weather"
    UNITS = "metric"

    def fetch_historical(self, lat: float, lon: float, timestamp: int) -> EnrichmentResult:
        """
        Fetch weather at a position and moment in the past.

        Args:
            lat: Latitude in decimal degrees.
            lon: Longitude in decimal degrees.
            timestamp: Unix timestamp (seconds).

        Returns:
            EnrichmentResult with the provider payload.
        """
        logger.debug(f"Fetching historical weather for ({lat}, {lon}) at {timestamp}")
        return self._get_json(
            self.HISTORICAL_URL,
            {
                "lat": lat,
                "lon": lon,
                "dt": timestamp,
                "appid": self.api_key,
                "units": self.UNITS,
            },
        )

    def fetch_current(self, lat: float, lon: float) -> EnrichmentResult:
        """
        Fetch current weather at a position.

        Args:
            lat: Latitude in decimal degrees.
            lon: Longitude in decimal degrees.

        Returns:
            EnrichmentResult with the provider payload.
        """
        logger.debug(f"Fetching current weather for ({lat}, {lon})")
        return self._get_json(
            self.CURRENT_URL,
            {
                "lat": lat,
                "lon": lon,
                "appid": self.api_key,
                "units": self.UNITS,
            },
        )
