import pytest

from services.health import HealthTracker


@pytest.mark.anyio
async def test_first_success_creates_row(health: HealthTracker) -> None:
    assert await health.get("weather.gov") is None

    status = await health.record_success("weather.gov")

    assert status.fetch_count == 1
    assert status.error_count == 0
    assert status.last_success_at is not None
    assert status.is_active is True
    stored = await health.get("weather.gov")
    assert stored is not None and stored.fetch_count == 1


@pytest.mark.anyio
async def test_errors_and_successes_accumulate_independently(health: HealthTracker) -> None:
    await health.record_error("marine-data", "HTTP 503 from https://example.test")
    await health.record_success("marine-data")
    await health.record_error("marine-data", "No data found in marine response for station 8518750")

    status = await health.get("marine-data")
    assert status is not None
    assert status.fetch_count == 1
    assert status.error_count == 2
    assert status.last_error_message == "No data found in marine response for station 8518750"
    assert status.last_error_at is not None
    assert status.last_success_at is not None


@pytest.mark.anyio
async def test_active_flag_defaults_true_and_can_be_toggled(health: HealthTracker) -> None:
    assert await health.is_active("fire-data") is True

    await health.set_active("fire-data", False)
    assert await health.is_active("fire-data") is False

    await health.record_success("fire-data")
    status = await health.get("fire-data")
    assert status is not None
    assert status.is_active is False
    assert status.fetch_count == 1


@pytest.mark.anyio
async def test_list_orders_by_source_name(health: HealthTracker) -> None:
    for name in ("weather.gov", "air-quality", "open-meteo"):
        await health.record_success(name)
    names = [status.source_name for status in await health.list()]
    assert names == ["air-quality", "open-meteo", "weather.gov"]
