import argparse
import asyncio
import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from background_tasks import ClockTask, FetchScheduler
from config_loader import default_location, load_config
from config_store import ConfigStore
from display import DisplayState
from models import AppState, Config, Location, StatusKind, sanitize_location
from weather_service import WeatherService

# Configure logging with Docker-friendly format
log_level = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, log_level),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.StreamHandler(),
        (
            logging.FileHandler("/app/logs/weatherclock.log")
            if os.path.exists("/app/logs")
            else logging.NullHandler()
        ),
    ],
)
logger = logging.getLogger(__name__)


class LocationUpdate(BaseModel):
    latitude: Optional[str] = None
    longitude: Optional[str] = None


def create_app(
    config: Config,
    location_override: Optional[Location] = None,
    weather_service: Optional[WeatherService] = None,
) -> FastAPI:
    """Build the kiosk API. Scheduler and clock run for the lifetime of the app."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        logger.info("Starting weather clock")
        store = ConfigStore(config.location.state_file)
        defaults = default_location(config)
        location, tz = store.load(defaults)

        if location_override is not None:
            location = sanitize_location(location_override, defaults)
            store.save(location, tz)
            logger.info(f"Location from command line: {location.latitude}, {location.longitude}")

        state = AppState(location=location, default_location=defaults, timezone=tz)
        display = DisplayState(keep_stale_forecast=config.display.keep_stale_forecast)
        service = weather_service or WeatherService(
            config.weather.api_url,
            forecast_days=config.weather.forecast_days,
            timeout_seconds=config.weather.request_timeout_seconds,
        )
        scheduler = FetchScheduler(state, service, store, display, config.weather)
        clock = ClockTask(state, display)

        app.state.app_state = state
        app.state.display = display
        app.state.scheduler = scheduler

        clock.tick()
        clock_task = asyncio.create_task(clock.run())
        scheduler.start()

        yield

        # Shutdown
        logger.info("Shutting down weather clock")
        scheduler.stop()
        clock.stop()
        clock_task.cancel()
        try:
            await clock_task
        except asyncio.CancelledError:
            logger.info("Clock task cancelled successfully")
        await service.close()

    app = FastAPI(
        title="Weather Clock",
        description="Clock and rolling 6-hour Open-Meteo forecast for a kiosk display",
        version="1.0.0",
        lifespan=lifespan,
    )

    @app.get("/forecast")
    async def get_forecast(request: Request):
        """
        Current forecast window and fetch status.

        Each hour carries its label, temperature, description and icon.
        """
        display: DisplayState = request.app.state.display
        if display.window is None and (
            display.status is None or display.status.kind == StatusKind.FETCHING
        ):
            raise HTTPException(
                status_code=503,
                detail="Weather data is not available yet. Please try again in a few moments.",
            )
        return display.snapshot()

    @app.get("/clock")
    async def get_clock(request: Request):
        display: DisplayState = request.app.state.display
        if display.clock is None:
            raise HTTPException(status_code=503, detail="Clock not ready")
        return display.clock

    @app.get("/location")
    async def get_location(request: Request):
        state: AppState = request.app.state.app_state
        return {"location": state.location, "timezone": state.timezone}

    @app.put("/location")
    async def update_location(update: LocationUpdate, request: Request):
        """Change the forecast location and refetch immediately."""
        scheduler: FetchScheduler = request.app.state.scheduler
        scheduler.set_location(update.latitude, update.longitude)
        return {"location": scheduler.state.location}

    @app.post("/refresh")
    async def refresh(request: Request):
        """Manually refresh the forecast."""
        scheduler: FetchScheduler = request.app.state.scheduler
        scheduler.start_fetch()
        return {"message": "Weather refresh started"}

    @app.get("/health")
    async def health_check(request: Request):
        state: AppState = request.app.state.app_state
        scheduler: FetchScheduler = request.app.state.scheduler
        display: DisplayState = request.app.state.display
        return {
            "status": "healthy",
            "fetch_state": scheduler.state_name,
            "retry": state.retry,
            "last_updated": display.last_updated.isoformat() if display.last_updated else None,
        }

    @app.exception_handler(Exception)
    async def general_exception_handler(request, exc):
        """Handle general exceptions."""
        logger.error(f"Unhandled exception: {exc}")
        return JSONResponse(
            status_code=500, content={"error": "Internal server error", "message": str(exc)}
        )

    return app


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Kiosk clock with hourly weather forecast")
    parser.add_argument("latitude", nargs="?", help="overrides and replaces the saved latitude")
    parser.add_argument("longitude", nargs="?", help="overrides and replaces the saved longitude")
    parser.add_argument("--config", default="config.toml", help="settings file (TOML)")
    args = parser.parse_args(argv)
    if (args.latitude is None) != (args.longitude is None):
        parser.error("latitude and longitude must be given together")
    return args


if __name__ == "__main__":
    import uvicorn

    args = parse_args()
    config = load_config(args.config)

    override = None
    if args.latitude is not None:
        override = Location(latitude=args.latitude, longitude=args.longitude)

    # Get configuration from environment or config
    host = os.getenv("HOST", config.server.host)
    port = int(os.getenv("PORT", config.server.port))

    logger.info(f"Starting server on {host}:{port}")

    uvicorn.run(
        create_app(config, override),
        host=host,
        port=port,
        log_level=log_level.lower(),
        access_log=True,
    )
