"""Tests for the weather/geocoding clients and the enricher."""

from datetime import datetime
from unittest.mock import MagicMock

import pytest
import requests

from config import ConfigurationError
from conftest import FakeGeocodingClient, FakeWeatherClient
from integrations.base import EnrichmentResult, ResultStatus, build_session
from integrations.geocoding import GoogleGeocodingClient
from integrations.weather import OpenWeatherClient
from pipeline.coordinates import DecimalCoordinate
from pipeline.enricher import Enricher, to_unix_timestamp


def fake_session(payload=None, status_code=200, error=None):
    """A requests.Session stand-in returning one canned response."""
    session = MagicMock(spec=requests.Session)
    if error is not None:
        session.get.side_effect = error
        return session

    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(
            f"{status_code} Client Error"
        )
    session.get.return_value = response
    return session


# =============================================================================
# CLIENT CONSTRUCTION
# =============================================================================

@pytest.mark.parametrize("client_cls", [OpenWeatherClient, GoogleGeocodingClient])
@pytest.mark.parametrize("api_key", [None, ""])
def test_missing_key_is_a_configuration_error(client_cls, api_key):
    with pytest.raises(ConfigurationError):
        client_cls(api_key)


# =============================================================================
# WEATHER
# =============================================================================

def test_historical_weather_request_and_payload():
    payload = {"lat": 25.03, "lon": 121.56, "data": [{"dt": 1710469800, "temp": 22.1}]}
    session = fake_session(payload)
    client = OpenWeatherClient("key-123", timeout=5, session=session)

    result = client.fetch_historical(25.03, 121.56, 1710469800)

    assert result.available
    assert result.payload == payload
    url = session.get.call_args.args[0]
    kwargs = session.get.call_args.kwargs
    assert url == OpenWeatherClient.HISTORICAL_URL
    assert kwargs["params"] == {
        "lat": 25.03,
        "lon": 121.56,
        "dt": 1710469800,
        "appid": "key-123",
        "units": "metric",
    }
    assert kwargs["timeout"] == 5


def test_current_weather_uses_current_endpoint():
    session = fake_session({"main": {"temp": 30}})
    client = OpenWeatherClient("key-123", session=session)

    assert client.fetch_current(1.0, 2.0).payload == {"main": {"temp": 30}}
    assert session.get.call_args.args[0] == OpenWeatherClient.CURRENT_URL
    assert "dt" not in session.get.call_args.kwargs["params"]


@pytest.mark.parametrize("session", [
    fake_session(error=requests.exceptions.Timeout("read timed out")),
    fake_session(error=requests.exceptions.ConnectionError("refused")),
    fake_session({"message": "Invalid API key"}, status_code=401),
    fake_session({"message": "boom"}, status_code=503),
])
def test_weather_failures_are_unavailable(session):
    client = OpenWeatherClient("key-123", session=session)

    result = client.fetch_historical(25.0, 121.0, 0)

    assert result.status is ResultStatus.UNAVAILABLE
    assert result.payload_or_none() is None
    assert result.reason


def test_invalid_json_is_unavailable():
    session = fake_session()
    session.get.return_value.json.side_effect = ValueError("Expecting value")
    client = OpenWeatherClient("key-123", session=session)

    assert not client.fetch_current(0, 0).available


# =============================================================================
# GEOCODING
# =============================================================================

def test_reverse_geocode_returns_first_result():
    first = {"formatted_address": "Taipei 101", "place_id": "a"}
    session = fake_session({"status": "OK", "results": [first, {"place_id": "b"}]})
    client = GoogleGeocodingClient("maps-key", session=session)

    result = client.reverse_geocode(25.0339, 121.5645)

    assert result.payload == first
    assert session.get.call_args.kwargs["params"] == {
        "latlng": "25.0339,121.5645",
        "key": "maps-key",
    }


@pytest.mark.parametrize("body", [
    {"status": "ZERO_RESULTS", "results": []},
    {"status": "OK", "results": []},
    {"status": "REQUEST_DENIED", "error_message": "bad key"},
])
def test_reverse_geocode_without_results_is_unavailable(body):
    client = GoogleGeocodingClient("maps-key", session=fake_session(body))
    assert not client.reverse_geocode(0, 0).available


def test_geocode_address_returns_coordinate():
    body = {
        "status": "OK",
        "results": [{"geometry": {"location": {"lat": 25.0339, "lng": 121.5645}}}],
    }
    session = fake_session(body)
    client = GoogleGeocodingClient("maps-key", session=session)

    result = client.geocode_address("Taipei 101")

    assert result.payload == DecimalCoordinate(lat=25.0339, lon=121.5645)
    assert session.get.call_args.kwargs["params"]["address"] == "Taipei 101"


def test_geocode_address_without_geometry_is_unavailable():
    body = {"status": "OK", "results": [{"formatted_address": "somewhere"}]}
    client = GoogleGeocodingClient("maps-key", session=fake_session(body))
    assert not client.geocode_address("somewhere").available


# =============================================================================
# ENRICHER
# =============================================================================

COORDINATE = DecimalCoordinate(lat=25.0339, lon=121.5645)


def test_enrich_with_capture_time_runs_both_lookups(fake_weather, fake_geocoder):
    captured_at = datetime(2024, 3, 15, 10, 30, 0)
    enrichment = Enricher(fake_weather, fake_geocoder).enrich(COORDINATE, captured_at)

    assert fake_weather.calls == [(25.0339, 121.5645, to_unix_timestamp(captured_at))]
    assert fake_geocoder.calls == [(25.0339, 121.5645)]
    assert enrichment.weather_data == {"data": [{"temp": 21.5}]}
    assert enrichment.geo_data["formatted_address"].startswith("No. 7")


def test_enrich_without_capture_time_skips_weather(fake_weather, fake_geocoder):
    enrichment = Enricher(fake_weather, fake_geocoder).enrich(COORDINATE, None)

    assert fake_weather.calls == []
    assert enrichment.weather_data is None
    assert not enrichment.weather.available
    assert enrichment.geo_data is not None


def test_one_lookup_failing_does_not_affect_the_other(fake_geocoder):
    weather = FakeWeatherClient(EnrichmentResult.unavailable("timed out"))
    enrichment = Enricher(weather, fake_geocoder).enrich(COORDINATE, datetime(2024, 1, 1))

    assert enrichment.weather_data is None
    assert enrichment.geo_data is not None


def test_client_exceptions_become_unavailable(fake_weather):
    geocoder = FakeGeocodingClient()
    geocoder.reverse_geocode = MagicMock(side_effect=RuntimeError("socket closed"))

    enrichment = Enricher(fake_weather, geocoder).enrich(COORDINATE, datetime(2024, 1, 1))

    assert enrichment.geo_data is None
    assert "socket closed" in enrichment.location.reason
    assert enrichment.weather_data is not None


def test_unix_timestamp_uses_local_wall_clock():
    captured_at = datetime(2024, 3, 15, 10, 30, 0)
    assert datetime.fromtimestamp(to_unix_timestamp(captured_at)) == captured_at


@pytest.mark.parametrize("error", [
    ValueError("year 0 is out of range"),
    OverflowError("timestamp out of range for platform time_t"),
    OSError("Value too large for defined data type"),
])
def test_unconvertible_capture_time_degrades_weather_only(
    monkeypatch, fake_weather, fake_geocoder, error
):
    def fail(captured_at):
        raise error

    monkeypatch.setattr("pipeline.enricher.to_unix_timestamp", fail)

    enrichment = Enricher(fake_weather, fake_geocoder).enrich(COORDINATE, datetime(1, 1, 1))

    assert fake_weather.calls == []
    assert enrichment.weather_data is None
    assert str(error) in enrichment.weather.reason
    assert enrichment.geo_data is not None


def test_session_does_not_retry_read_timeouts():
    retry = build_session(max_retries=3).get_adapter("https://api.openweathermap.org").max_retries

    assert retry.total == 3
    assert retry.read == 0
    assert set(retry.status_forcelist) == {500, 502, 503, 504}
