import pytest
from aiohttp import web
from aiohttp import test_utils

from conftest import DEFAULT_LOCATION, SCENARIO_A, payload
from errors import TransportError
from weather_service import WeatherService


def make_server(status, body, seen):
    async def handler(request):
        seen.append(dict(request.query))
        return web.Response(status=status, body=body, content_type="application/json")

    app = web.Application()
    app.router.add_get("/v1/forecast", handler)
    return test_utils.TestServer(app)


def test_build_params():
    service = WeatherService("https://example.invalid/v1/forecast")
    assert service.build_params(DEFAULT_LOCATION) == {
        "latitude": "43.640",
        "longitude": "-79.565",
        "hourly": "temperature_2m,weathercode",
        "forecast_days": "2",
        "timezone": "auto",
    }


async def test_fetch_returns_body():
    seen = []
    async with make_server(200, payload(SCENARIO_A), seen) as server:
        service = WeatherService(str(server.make_url("/v1/forecast")))
        body = await service.fetch_forecast(DEFAULT_LOCATION)
        await service.close()

    assert body == payload(SCENARIO_A)
    assert seen[0]["latitude"] == "43.640"
    assert seen[0]["timezone"] == "auto"


async def test_client_error_body_is_returned_for_parsing():
    error = payload({"error": True, "reason": "Invalid latitude"})
    async with make_server(400, error, []) as server:
        service = WeatherService(str(server.make_url("/v1/forecast")))
        body = await service.fetch_forecast(DEFAULT_LOCATION)
        await service.close()

    assert body == error


async def test_server_error_is_transport_error():
    async with make_server(503, b"unavailable", []) as server:
        service = WeatherService(str(server.make_url("/v1/forecast")))
        with pytest.raises(TransportError):
            await service.fetch_forecast(DEFAULT_LOCATION)
        await service.close()


async def test_connection_failure_is_transport_error():
    async with make_server(200, b"{}", []) as server:
        url = str(server.make_url("/v1/forecast"))
    # server is closed now
    service = WeatherService(url, timeout_seconds=2)
    with pytest.raises(TransportError):
        await service.fetch_forecast(DEFAULT_LOCATION)
    await service.close()
