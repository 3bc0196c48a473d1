"""
Runtime settings read from the environment (and a local .env file).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional, Tuple

from dotenv import load_dotenv

log = logging.getLogger(__name__)

DEFAULT_ALLOW_ORIGINS: Tuple[str, ...] = (
    "capacitor://localhost",
    "http://localhost",
    "http://127.0.0.1",
)


def _float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw in (None, ""):
        return default
    try:
        return float(raw)
    except ValueError:
        log.warning("Invalid %s=%r, using %s", key, raw, default)
        return default


def _int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw in (None, ""):
        return default
    try:
        return int(raw)
    except ValueError:
        log.warning("Invalid %s=%r, using %s", key, raw, default)
        return default


def _bool(env: Mapping[str, str], key: str, default: bool) -> bool:
    raw = env.get(key)
    if raw in (None, ""):
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    product_db_base: str = "https://world.openfoodfacts.org/api/v2/product"
    advisory_url: str = ""
    advisory_timeout: float = 12.0
    lookup_timeout: float = 10.0
    lang: str = "en"
    history_path: Optional[str] = "db/history/history.csv"
    history_limit: int = 50
    advisory_on_not_found: bool = False
    allow_origins: Tuple[str, ...] = field(default=DEFAULT_ALLOW_ORIGINS)
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from ``environ`` (defaults to os.environ after loading
        .env). Unset or invalid values keep their defaults.
        """
        if environ is None:
            load_dotenv()
            environ = os.environ
        defaults = cls()

        origins = environ.get("SAFESCAN_ALLOW_ORIGINS")
        allow_origins = (
            tuple(o.strip() for o in origins.split(",") if o.strip())
            if origins
            else defaults.allow_origins
        )

        return cls(
            product_db_base=environ.get("SAFESCAN_PRODUCT_DB_BASE") or defaults.product_db_base,
            advisory_url=environ.get("SAFESCAN_ADVISORY_URL", defaults.advisory_url),
            advisory_timeout=_float(environ, "SAFESCAN_ADVISORY_TIMEOUT", defaults.advisory_timeout),
            lookup_timeout=_float(environ, "SAFESCAN_LOOKUP_TIMEOUT", defaults.lookup_timeout),
            lang=environ.get("SAFESCAN_LANG") or defaults.lang,
            history_path=environ.get("SAFESCAN_HISTORY_PATH", defaults.history_path) or None,
            history_limit=_int(environ, "SAFESCAN_HISTORY_LIMIT", defaults.history_limit),
            advisory_on_not_found=_bool(
                environ, "SAFESCAN_ADVISORY_ON_NOT_FOUND", defaults.advisory_on_not_found
            ),
            allow_origins=allow_origins,
            openai_api_key=environ.get("OPENAI_API_KEY", ""),
            openai_model=environ.get("SAFESCAN_OPENAI_MODEL") or defaults.openai_model,
        )
