# eyewear_catalog/config.py
import os
import logging
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Base directory of the project
BASE_DIR = Path(__file__).resolve().parent.parent

_TRUTHY = {"1", "true", "yes", "on"}


def _env_flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUTHY


def _env_number(name: str, default, cast):
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        number = cast(value)
    except ValueError:
        raise ValueError(f"Invalid value for {name}: {value!r}") from None
    if number <= 0:
        raise ValueError(f"{name} must be positive, got {value!r}")
    return number


class Config:
    """Configuration settings for the catalog resolver"""

    # Backend settings
    API_BASE_URL: str = os.getenv("CATALOG_API_BASE_URL", "http://localhost:5000/api").rstrip("/")
    API_TOKEN: str = os.getenv("CATALOG_API_TOKEN", "")
    REQUEST_TIMEOUT: float = _env_number("CATALOG_REQUEST_TIMEOUT", 10.0, float)
    MAX_CONCURRENCY: int = _env_number("CATALOG_MAX_CONCURRENCY", 8, int)

    # Trace output of the resolver
    DEBUG: bool = _env_flag("CATALOG_DEBUG")

    # Other settings
    TIMEZONE: str = os.getenv("CATALOG_TIMEZONE", "UTC")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    # Paths
    LOG_DIR = BASE_DIR / "logs"


def setup_logging():
    """Configure logging settings"""
    log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    Config.LOG_DIR.mkdir(exist_ok=True)
    log_file = Config.LOG_DIR / "catalog.log"

    level = logging.DEBUG if Config.DEBUG else getattr(logging, Config.LOG_LEVEL, logging.INFO)
    logging.basicConfig(
        level=level,
        format=log_format,
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler()
        ]
    )
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
