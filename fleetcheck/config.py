"""Configuration loading.

Rules:
- Primary source: `fleetcheck_config.json` at the project root.
- Overrides: optional text files under `config/`, then environment variables
  (a local `.env` is loaded first without overriding the real environment).
- Validation: pydantic models enforce value constraints.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator

CONFIG_DIR = Path("config")
ROOT_CONFIG = Path("fleetcheck_config.json")
logger = logging.getLogger(__name__)


def _read_config_file(rel_path: str) -> Optional[str]:
    path = CONFIG_DIR / rel_path
    try:
        if path.exists():
            return path.read_text(encoding="utf-8").strip()
    except (OSError, UnicodeDecodeError) as e:
        # Recoverable: log and ignore unreadable override
        logger.warning("Failed to read override %s: %s", path, e)
        return None
    return None


def _env(key: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(key, default)


def _as_bool(value: object) -> bool:
    return str(value).strip().lower() in {"true", "1", "yes", "on"}


class StoreConfig(BaseModel):
    base_url: str
    timeout_seconds: float = Field(default=30.0, gt=0)

    @field_validator("base_url")
    @classmethod
    def base_url_must_be_http(cls, v: str) -> str:
        if not isinstance(v, str) or not v.strip().startswith(("http://", "https://")):
            raise ValueError("store.base_url must be an http(s) URL")
        return v.strip().rstrip("/")


class CacheConfig(BaseModel):
    ttl_seconds: float = Field(default=300.0, gt=0)


class AutosaveConfig(BaseModel):
    interval_seconds: float = Field(default=30.0, ge=5)


class SubmitConfig(BaseModel):
    allow_overwrite: bool = True


class DatabaseConfig(BaseModel):
    dsn: str

    @field_validator("dsn")
    @classmethod
    def dsn_must_be_non_empty(cls, v: str) -> str:
        if not isinstance(v, str) or not v.strip():
            raise ValueError("database.dsn must be a non-empty string")
        return v


class AppConfig(BaseModel):
    store: StoreConfig
    cache: CacheConfig
    autosave: AutosaveConfig
    submit: SubmitConfig
    database: DatabaseConfig


def _read_json_file(path: Path) -> dict:
    try:
        if path.exists():
            return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.error("Failed to read JSON config %s: %s", path, e)
    return {}


def load_config() -> AppConfig:
    """Load configuration with validation.

    Precedence (highest first):
    1) Environment variables (including a local .env)
    2) Text files in `config/`
    3) fleetcheck_config.json at project root
    4) Defaults for development
    """
    load_dotenv(override=False)
    base = _read_json_file(ROOT_CONFIG)

    def _base(path: str, default: Optional[str] = None) -> Optional[str]:
        cur: object = base
        for key in path.split("."):
            if not isinstance(cur, dict) or key not in cur:
                return default
            cur = cur[key]
        return str(cur) if cur is not None else default

    store_url = _env("FLEETCHECK_STORE_URL") or _read_config_file("store.url") or _base("store.base_url", "http://localhost:8001")
    store_timeout = _env("FLEETCHECK_STORE_TIMEOUT") or _read_config_file("store.timeout") or _base("store.timeout_seconds", "30")
    cache_ttl = _env("FLEETCHECK_CACHE_TTL") or _read_config_file("cache.ttl") or _base("cache.ttl_seconds", "300")
    autosave_interval = (
        _env("FLEETCHECK_AUTOSAVE_INTERVAL") or _read_config_file("autosave.interval") or _base("autosave.interval_seconds", "30")
    )
    allow_overwrite = (
        _env("FLEETCHECK_SUBMIT_ALLOW_OVERWRITE")
        or _read_config_file("submit.allow_overwrite")
        or _base("submit.allow_overwrite", "true")
    )
    dsn = _env("DATABASE_URL") or _read_config_file("database.url") or _base("database.dsn") or "sqlite+pysqlite:///:memory:"

    try:
        return AppConfig(
            store=StoreConfig(base_url=store_url, timeout_seconds=store_timeout),
            cache=CacheConfig(ttl_seconds=cache_ttl),
            autosave=AutosaveConfig(interval_seconds=autosave_interval),
            submit=SubmitConfig(allow_overwrite=_as_bool(allow_overwrite)),
            database=DatabaseConfig(dsn=dsn),
        )
    except PydanticValidationError as e:
        logger.error("Invalid application configuration: %s", e)
        raise


__all__ = [
    "AppConfig",
    "StoreConfig",
    "CacheConfig",
    "AutosaveConfig",
    "SubmitConfig",
    "DatabaseConfig",
    "load_config",
]
