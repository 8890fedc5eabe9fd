"""
Configuration - read once from environment variables or a .env file.

  DATABASE_URL           async SQLAlchemy URL (default: sqlite+aiosqlite:///mikrocrm.db)
  DATA_DIR               directory for cache / status / record JSON files (default: data)
  SECRET_KEY             JWT and user-manager secret
  LOG_LEVEL              DEBUG | INFO | WARNING | ERROR (default: INFO)
  ROUTEROS_TIMEOUT       seconds, ad-hoc router calls (default: 15)
  SYNC_TIMEOUT           seconds, /api/mikrotik/sync (default: 30)
  MONITOR_ENABLED        start the network monitor on startup (default: true)
  MONITOR_INTERVAL       seconds between sweeps (default: 300)
  MONITOR_INITIAL_DELAY  seconds before the first sweep (default: 10)
  HOST / PORT            uvicorn bind (default: 0.0.0.0 / 3001)
"""
import logging
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

log = logging.getLogger("Config")


def _optional_int(key: str, default: int) -> int:
    raw = os.environ.get(key, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        log.warning(f"Config: {key}='{raw}' is not a valid integer, using default {default}")
        return default


def _optional_str(key: str, default: str = "") -> str:
    return os.environ.get(key, default).strip() or default


def _optional_bool(key: str, default: bool = False) -> bool:
    raw = os.environ.get(key, "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes")


def _valid_log_level(level: str) -> str:
    if level.upper() not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
        log.warning(f"Config: LOG_LEVEL='{level}' is invalid, defaulting to INFO")
        return "INFO"
    return level.upper()


DATABASE_URL: str = _optional_str("DATABASE_URL", "sqlite+aiosqlite:///mikrocrm.db")
DATA_DIR: Path = Path(_optional_str("DATA_DIR", "data"))
SECRET_KEY: str = _optional_str("SECRET_KEY", "CHANGE_ME_IN_PRODUCTION_USE_OPENSSL_RAND_HEX_32")
LOG_LEVEL: str = _valid_log_level(_optional_str("LOG_LEVEL", "INFO"))

ROUTEROS_TIMEOUT: int = _optional_int("ROUTEROS_TIMEOUT", 15)
SYNC_TIMEOUT: int = _optional_int("SYNC_TIMEOUT", 30)

MONITOR_ENABLED: bool = _optional_bool("MONITOR_ENABLED", True)
MONITOR_INTERVAL: int = _optional_int("MONITOR_INTERVAL", 300)
MONITOR_INITIAL_DELAY: int = _optional_int("MONITOR_INITIAL_DELAY", 10)

HOST: str = _optional_str("HOST", "0.0.0.0")
PORT: int = _optional_int("PORT", 3001)
