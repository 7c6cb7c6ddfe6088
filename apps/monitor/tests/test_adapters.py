import sqlite3
from datetime import date, datetime, timezone

import httpx
import pytest

from config import Settings
from services.adapters import (
    AirQualityAdapter,
    GriddedForecastAdapter,
    Location,
    MarineAdapter,
    StationWeatherAdapter,
    WildfireAdapter,
)
from services.errors import ParseError, TransportError
from services.health import HealthTracker
from services.readings import (
    AirQualityReading,
    GriddedForecastReading,
    MarineReading,
    StationWeatherReading,
)
from services.store import MonitorStore

WEATHER_URL = "https://api.weather.gov/stations/{station}/observations/latest"
METEO_URL = "https://api.open-meteo.com/v1/forecast"
MARINE_URL = "https://api.tidesandcurrents.noaa.gov/api/prod/datagetter"
AIRNOW_URL = "https://www.airnowapi.org/aq/observation/latLong/current/"
CHICAGO = Location("Chicago", 41.8781, -87.6298)
SINCE = datetime(2000, 1, 1, tzinfo=timezone.utc)


def _observation(**overrides):
    properties = {
        "timestamp": "2024-05-01T17:51:00+00:00",
        "temperature": {"value": 20.0, "unitCode": "wmoUnit:degC"},
        "relativeHumidity": {"value": 55.2},
        "barometricPressure": {"value": 101325},
        "windSpeed": {"value": 5.0},
        "windDirection": {"value": 270},
        "visibility": {"value": 16090},
        "textDescription": "Partly Cloudy",
    }
    properties.update(overrides)
    return {"type": "Feature", "properties": properties}


@pytest.mark.anyio
async def test_station_weather_converts_units_and_reports_success(
    respx_mock, test_settings: Settings, store: MonitorStore, health: HealthTracker
) -> None:
    respx_mock.get(WEATHER_URL.format(station="KORD")).mock(return_value=httpx.Response(200, json=_observation()))
    adapter = StationWeatherAdapter(store, health, test_settings)

    outcome = await adapter.fetch("kord")
    await adapter.close()

    assert outcome.ok
    reading = outcome.records[0]
    assert reading.station_id == "KORD"
    assert reading.timestamp == datetime(2024, 5, 1, 17, 51, tzinfo=timezone.utc)
    assert reading.temperature_f == pytest.approx(68.0)
    assert reading.pressure_inhg == pytest.approx(29.921, abs=1e-3)
    assert reading.wind_speed_mph == pytest.approx(11.185)
    assert reading.wind_direction_deg == 270
    assert reading.visibility_miles == pytest.approx(9.998, abs=1e-3)
    assert reading.conditions_text == "Partly Cloudy"

    stored = await store.recent_readings(StationWeatherReading, SINCE)
    assert [row.station_id for row in stored] == ["KORD"]
    status = await health.get("weather.gov")
    assert status is not None and status.fetch_count == 1 and status.error_count == 0


@pytest.mark.anyio
async def test_station_weather_missing_optional_fields_are_left_unset(
    respx_mock, test_settings: Settings, store: MonitorStore, health: HealthTracker
) -> None:
    payload = _observation(temperature={"value": None}, windDirection={}, visibility="n/a")
    respx_mock.get(WEATHER_URL.format(station="KLAX")).mock(return_value=httpx.Response(200, json=payload))
    adapter = StationWeatherAdapter(store, health, test_settings)

    outcome = await adapter.fetch("KLAX")

    assert outcome.ok
    reading = outcome.records[0]
    assert reading.temperature_f is None
    assert reading.wind_direction_deg is None
    assert reading.visibility_miles is None
    assert reading.humidity_pct == pytest.approx(55.2)


@pytest.mark.anyio
async def test_station_weather_without_properties_is_a_parse_error(
    respx_mock, test_settings: Settings, store: MonitorStore, health: HealthTracker
) -> None:
    respx_mock.get(WEATHER_URL.format(station="KORD")).mock(return_value=httpx.Response(200, json={"type": "Feature"}))
    adapter = StationWeatherAdapter(store, health, test_settings)

    outcome = await adapter.fetch("KORD")

    assert not outcome.ok
    assert isinstance(outcome.error, ParseError)
    assert await store.recent_readings(StationWeatherReading, SINCE) == []
    status = await health.get("weather.gov")
    assert status is not None
    assert status.error_count == 1
    assert status.fetch_count == 0
    assert "KORD" in (status.last_error_message or "")


@pytest.mark.anyio
async def test_http_error_becomes_transport_error(
    respx_mock, test_settings: Settings, store: MonitorStore, health: HealthTracker
) -> None:
    respx_mock.get(WEATHER_URL.format(station="KORD")).mock(return_value=httpx.Response(503, text="busy"))
    adapter = StationWeatherAdapter(store, health, test_settings)

    outcome = await adapter.fetch("KORD")

    assert isinstance(outcome.error, TransportError)
    assert "HTTP 503" in str(outcome.error)
    status = await health.get("weather.gov")
    assert status is not None and status.last_error_message == str(outcome.error)


@pytest.mark.anyio
async def test_non_json_body_is_a_parse_error(
    respx_mock, test_settings: Settings, store: MonitorStore, health: HealthTracker
) -> None:
    respx_mock.get(WEATHER_URL.format(station="KORD")).mock(return_value=httpx.Response(200, text="<html>"))
    adapter = StationWeatherAdapter(store, health, test_settings)

    outcome = await adapter.fetch("KORD")

    assert isinstance(outcome.error, ParseError)


@pytest.mark.anyio
async def test_bulk_job_attempts_every_target_when_one_fails(
    respx_mock, test_settings: Settings, store: MonitorStore, health: HealthTracker
) -> None:
    respx_mock.get(WEATHER_URL.format(station="KORD")).mock(return_value=httpx.Response(500))
    respx_mock.get(WEATHER_URL.format(station="KLAX")).mock(return_value=httpx.Response(200, json=_observation()))
    adapter = StationWeatherAdapter(store, health, test_settings)

    result = await adapter.fetch_defaults()

    assert len(result.outcomes) == 2
    assert result.succeeded == 1
    assert result.failed == 1
    stored = await store.recent_readings(StationWeatherReading, SINCE)
    assert [row.station_id for row in stored] == ["KLAX"]
    status = await health.get("weather.gov")
    assert status is not None
    assert (status.fetch_count, status.error_count) == (1, 1)


@pytest.mark.anyio
async def test_gridded_forecast_parses_local_time_and_converts(
    respx_mock, test_settings: Settings, store: MonitorStore, health: HealthTracker
) -> None:
    payload = {
        "latitude": 41.875,
        "longitude": -87.625,
        "utc_offset_seconds": -18000,
        "current": {
            "time": "2024-05-01T12:00",
            "temperature_2m": 10.0,
            "relative_humidity_2m": 80,
            "precipitation": 0.4,
            "wind_speed_10m": 3.0,
            "wind_direction_10m": 185,
            "uv_index": 2.5,
        },
    }
    route = respx_mock.get(METEO_URL).mock(return_value=httpx.Response(200, json=payload))
    adapter = GriddedForecastAdapter(store, health, test_settings)

    outcome = await adapter.fetch(CHICAGO)

    assert outcome.ok
    request = route.calls.last.request
    assert request.url.params["latitude"] == "41.8781"
    assert request.url.params["wind_speed_unit"] == "ms"
    reading = outcome.records[0]
    assert reading.key == (41.8781, -87.6298)
    assert reading.timestamp == datetime(2024, 5, 1, 17, 0, tzinfo=timezone.utc)
    assert reading.temperature_f == pytest.approx(50.0)
    assert reading.wind_speed_mph == pytest.approx(6.711)
    assert reading.wind_direction_deg == 185
    assert reading.uv_index == 2.5
    assert len(await store.recent_readings(GriddedForecastReading, SINCE)) == 1


@pytest.mark.anyio
async def test_gridded_forecast_without_current_block_fails(
    respx_mock, test_settings: Settings, store: MonitorStore, health: HealthTracker
) -> None:
    respx_mock.get(METEO_URL).mock(return_value=httpx.Response(200, json={"latitude": 41.8}))
    adapter = GriddedForecastAdapter(store, health, test_settings)

    outcome = await adapter.fetch((41.8781, -87.6298))

    assert isinstance(outcome.error, ParseError)
    status = await health.get("open-meteo")
    assert status is not None and status.error_count == 1


@pytest.mark.anyio
async def test_marine_reads_latest_water_level(
    respx_mock, test_settings: Settings, store: MonitorStore, health: HealthTracker
) -> None:
    payload = {
        "metadata": {"id": "8518750", "name": "The Battery", "lat": "40.7006", "lon": "-74.0142"},
        "data": [{"t": "2024-05-01 12:06", "v": "2.345", "s": "0.003", "f": "0,0,0,0", "q": "p"}],
    }
    route = respx_mock.get(MARINE_URL).mock(return_value=httpx.Response(200, json=payload))
    adapter = MarineAdapter(store, health, test_settings)

    outcome = await adapter.fetch("8518750")

    assert outcome.ok
    assert route.calls.last.request.url.params["product"] == "water_level"
    reading = outcome.records[0]
    assert reading.timestamp == datetime(2024, 5, 1, 12, 6, tzinfo=timezone.utc)
    assert reading.water_level == pytest.approx(2.345)
    assert (reading.latitude, reading.longitude) == (40.7006, -74.0142)
    assert reading.wave_height is None
    assert len(await store.recent_readings(MarineReading, SINCE)) == 1


@pytest.mark.anyio
async def test_marine_error_payload_is_reported(
    respx_mock, test_settings: Settings, store: MonitorStore, health: HealthTracker
) -> None:
    payload = {"error": {"message": "No data was found."}}
    respx_mock.get(MARINE_URL).mock(return_value=httpx.Response(200, json=payload))
    adapter = MarineAdapter(store, health, test_settings)

    outcome = await adapter.fetch("8518750")

    assert isinstance(outcome.error, ParseError)
    assert "No data was found." in str(outcome.error)
    status = await health.get("marine-data")
    assert status is not None and status.error_count == 1


@pytest.mark.anyio
async def test_air_quality_fills_each_reported_pollutant(
    respx_mock, test_settings: Settings, store: MonitorStore, health: HealthTracker
) -> None:
    payload = [
        {
            "DateObserved": "2024-05-01 ",
            "HourObserved": 14,
            "LocalTimeZone": "CST",
            "ReportingArea": "Chicago",
            "ParameterName": "O3",
            "AQI": 41,
            "Value": 0.044,
        },
        {
            "DateObserved": "2024-05-01 ",
            "HourObserved": 14,
            "LocalTimeZone": "CST",
            "ReportingArea": "Chicago",
            "ParameterName": "PM2.5",
            "AQI": 58,
            "Value": 15.3,
        },
    ]
    route = respx_mock.get(AIRNOW_URL).mock(return_value=httpx.Response(200, json=payload))
    adapter = AirQualityAdapter(store, health, test_settings)

    outcome = await adapter.fetch(CHICAGO)

    assert outcome.ok
    assert route.calls.last.request.url.params["API_KEY"] == "test-key"
    reading = outcome.records[0]
    assert reading.station_id == "Chicago"
    assert reading.aqi == 41
    assert reading.o3 == pytest.approx(0.044)
    assert reading.pm25 == pytest.approx(15.3)
    assert reading.pm10 is None
    assert reading.timestamp == datetime(2024, 5, 1, 20, 0, tzinfo=timezone.utc)
    assert len(await store.recent_readings(AirQualityReading, SINCE)) == 1


@pytest.mark.anyio
async def test_air_quality_empty_response_fails(
    respx_mock, test_settings: Settings, store: MonitorStore, health: HealthTracker
) -> None:
    respx_mock.get(AIRNOW_URL).mock(return_value=httpx.Response(200, json=[]))
    adapter = AirQualityAdapter(store, health, test_settings)

    outcome = await adapter.fetch(CHICAGO)

    assert isinstance(outcome.error, ParseError)
    assert "Chicago" in str(outcome.error)


@pytest.mark.anyio
async def test_wildfire_feed_upserts_features_with_incident_ids(
    respx_mock, test_settings: Settings, store: MonitorStore, health: HealthTracker
) -> None:
    payload = {
        "features": [
            {
                "attributes": {
                    "INCIDENT_ID": "2024-CASNF-000123",
                    "INCIDENT_NAME": "Creek",
                    "DISCOVERY_DATE": 1714521600000,
                    "FIRE_SIZE": 1250.5,
                    "FIRE_CAUSE": "Lightning",
                    "FIRE_STATUS": "Active",
                    "INCIDENT_TYPE": "WF",
                },
                "geometry": {"rings": [[[-119.26, 37.19], [-119.25, 37.2]]]},
            },
            {"attributes": {"INCIDENT_NAME": "No id"}},
        ]
    }
    respx_mock.get(test_settings.fire_feed_url).mock(return_value=httpx.Response(200, json=payload))
    adapter = WildfireAdapter(store, health, test_settings)

    outcome = await adapter.fetch()

    assert outcome.ok
    assert [fire.fire_id for fire in outcome.records] == ["2024-CASNF-000123"]
    stored = await store.get_fire("2024-CASNF-000123")
    assert stored is not None
    assert (stored.latitude, stored.longitude) == (37.19, -119.26)
    assert stored.discovery_date == date(2024, 5, 1)
    assert stored.containment_date is None
    assert stored.size_acres == 1250.5
    status = await health.get("fire-data")
    assert status is not None and status.fetch_count == 1


@pytest.mark.anyio
async def test_wildfire_feed_without_features_fails(
    respx_mock, test_settings: Settings, store: MonitorStore, health: HealthTracker
) -> None:
    payload = {"error": {"code": 400, "message": "Invalid query"}}
    respx_mock.get(test_settings.fire_feed_url).mock(return_value=httpx.Response(200, json=payload))
    adapter = WildfireAdapter(store, health, test_settings)

    result = await adapter.fetch_defaults()

    assert result.failed == 1
    assert "Invalid query" in str(result.outcomes[0].error)
    assert await store.fire_statuses() == []


@pytest.mark.anyio
async def test_store_failure_is_reported_like_a_fetch_error(
    respx_mock,
    test_settings: Settings,
    store: MonitorStore,
    health: HealthTracker,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    respx_mock.get(WEATHER_URL.format(station="KORD")).mock(return_value=httpx.Response(200, json=_observation()))

    def _disk_error(table, reading):
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr(store, "_insert_reading", _disk_error)
    adapter = StationWeatherAdapter(store, health, test_settings)

    outcome = await adapter.fetch("KORD")

    assert outcome.ok is False
    status = await health.get("weather.gov")
    assert status is not None
    assert status.error_count == 1
    assert status.fetch_count == 0
    assert (status.last_error_message or "").startswith("Store operation failed")


@pytest.mark.anyio
async def test_partial_fire_feed_keeps_previously_known_attributes(
    respx_mock, test_settings: Settings, store: MonitorStore, health: HealthTracker
) -> None:
    first = {
        "features": [
            {
                "attributes": {
                    "INCIDENT_ID": "2024-CASNF-000123",
                    "INCIDENT_NAME": "Creek",
                    "FIRE_SIZE": 1250.5,
                    "FIRE_STATUS": "Active",
                },
                "geometry": {"rings": [[[-119.26, 37.19]]]},
            }
        ]
    }
    second = {"features": [{"attributes": {"INCIDENT_ID": "2024-CASNF-000123", "FIRE_SIZE": 99.0}}]}
    route = respx_mock.get(test_settings.fire_feed_url)
    route.side_effect = [httpx.Response(200, json=first), httpx.Response(200, json=second)]
    adapter = WildfireAdapter(store, health, test_settings)

    assert (await adapter.fetch()).ok
    assert (await adapter.fetch()).ok

    stored = await store.get_fire("2024-CASNF-000123")
    assert stored is not None
    assert stored.name == "Creek"
    assert stored.status == "Active"
    assert stored.size_acres == 99.0
    assert (stored.latitude, stored.longitude) == (37.19, -119.26)
    assert route.call_count == 2
