# Environment-driven settings for the tube proxy.

import os
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()


def env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def env_csv(name: str, default: str) -> List[str]:
    value = os.getenv(name, default)
    return [item.strip() for item in value.split(",") if item.strip()]


LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

TFL_BASE = os.getenv("TFL_BASE_URL", "https://api.tfl.gov.uk").rstrip("/")

TFL_APP_ID: Optional[str] = os.getenv("TFL_APP_ID")
TFL_APP_KEY: Optional[str] = os.getenv("TFL_APP_KEY")
TFL_HAS_KEYS = bool(TFL_APP_ID and TFL_APP_KEY)

TFL_CONNECT_TIMEOUT_SEC = env_float("TFL_CONNECT_TIMEOUT_SEC", 3.0)
TFL_READ_TIMEOUT_SEC = env_float("TFL_READ_TIMEOUT_SEC", 7.0)

STATIONS_MODE = os.getenv("STATIONS_MODE", "tube")
STATIONS_STOP_TYPE = os.getenv("STATIONS_STOP_TYPE", "NaptanMetroStation")

METADATA_CACHE_SEC = env_int("METADATA_CACHE_SEC", 3600)
DIRECTIONS_CACHE_SEC = env_int("DIRECTIONS_CACHE_SEC", 30)
CACHE_STALE_SEC = env_int("CACHE_STALE_SEC", 60)

DIRECTIONS_TRAIN_LIMIT = max(1, env_int("DIRECTIONS_TRAIN_LIMIT", 5))
TRAINS_LIMIT = max(1, env_int("TRAINS_LIMIT", 4))

CORS_ALLOWED_ORIGINS = set(env_csv("CORS_ALLOWED_ORIGINS", "*"))
if env_bool("CORS_ALLOW_NULL_ORIGIN", False):
    CORS_ALLOWED_ORIGINS.add("null")

APP_HOST = os.getenv("APP_HOST", "127.0.0.1")
APP_PORT = env_int("APP_PORT", 5010)
