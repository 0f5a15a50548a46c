"""Environment-driven runtime settings."""

from __future__ import annotations

from dataclasses import dataclass
import os
from typing import Mapping

from dotenv import load_dotenv

DEFAULT_API_BASE_URL = 'http://localhost:3000/api'
DEFAULT_MAX_WORKERS = 8
DEFAULT_LOG_LEVEL = 'INFO'


@dataclass(frozen=True)
class Settings:
    """Connection and runtime options for the dashboard."""

    api_base_url: str = DEFAULT_API_BASE_URL
    request_timeout: float | None = None
    max_workers: int = DEFAULT_MAX_WORKERS
    log_level: str = DEFAULT_LOG_LEVEL


def _env_float(env: Mapping[str, str], name: str) -> float | None:
    raw = str(env.get(name, '') or '').strip()
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError:
        return None
    return value if value > 0 else None


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = str(env.get(name, '') or '').strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """Build settings from the process environment (after reading .env) or a mapping."""
    if env is None:
        load_dotenv()
        env = os.environ
    base_url = str(env.get('ONEVIEW_API_BASE_URL', '') or '').strip() or DEFAULT_API_BASE_URL
    log_level = str(env.get('ONEVIEW_LOG_LEVEL', '') or '').strip().upper() or DEFAULT_LOG_LEVEL
    return Settings(
        api_base_url=base_url.rstrip('/'),
        request_timeout=_env_float(env, 'ONEVIEW_API_TIMEOUT'),
        max_workers=_env_int(env, 'ONEVIEW_MAX_WORKERS', DEFAULT_MAX_WORKERS),
        log_level=log_level,
    )
