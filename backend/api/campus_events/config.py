from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv

_env_loaded = False


def load_env_once() -> None:
    """Load the first .env found: $ENV_PATH, then backend/api/.env, then the cwd. Never overrides set variables."""
    global _env_loaded
    if _env_loaded:
        return
    _env_loaded = True

    candidates = [Path(p) for p in (os.getenv("ENV_PATH"),) if p]
    candidates += [Path(__file__).resolve().parents[1] / ".env", Path.cwd() / ".env"]
    for path in candidates:
        if path.exists():
            load_dotenv(path, override=False)
            return


@dataclass(frozen=True)
class Settings:
    log_level: str
    notify_retry_interval_sec: int
    notify_retry_grace_sec: int
    notify_retry_batch: int
    default_event_duration_hours: int


@lru_cache
def get_settings() -> Settings:
    load_env_once()
    return Settings(
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        notify_retry_interval_sec=int(os.getenv("NOTIFY_RETRY_INTERVAL_SEC", "30")),
        notify_retry_grace_sec=int(os.getenv("NOTIFY_RETRY_GRACE_SEC", "10")),
        notify_retry_batch=int(os.getenv("NOTIFY_RETRY_BATCH", "100")),
        default_event_duration_hours=int(os.getenv("DEFAULT_EVENT_DURATION_HOURS", "2")),
    )


def configure_logging() -> None:
    logging.basicConfig(
        level=get_settings().log_level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
