import logging
import os

import toml
from models import (
    Config,
    DisplayConfig,
    Location,
    LocationConfig,
    ServerConfig,
    WeatherConfig,
)

logger = logging.getLogger(__name__)


def load_config(config_path: str = "config.toml") -> Config:
    """Load configuration from TOML file. A missing file means all defaults."""
    if not os.path.exists(config_path):
        logger.info(f"No config file at {config_path}, using defaults")
        return Config()

    try:
        with open(config_path, "r") as f:
            config_data = toml.load(f)

        return Config(
            server=ServerConfig(**config_data.get("server", {})),
            weather=WeatherConfig(**config_data.get("weather", {})),
            location=LocationConfig(**config_data.get("location", {})),
            display=DisplayConfig(**config_data.get("display", {})),
        )

    except Exception as e:
        raise Exception(f"Failed to load config: {e}")


def default_location(config: Config) -> Location:
    """Coordinate used when nothing valid is stored or supplied."""
    return Location(
        latitude=config.location.default_latitude,
        longitude=config.location.default_longitude,
    )
