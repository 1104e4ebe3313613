from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional, Tuple

from dotenv import load_dotenv


# Load environment variables from a local .env if present (harmless in containers)
load_dotenv()

RESOLVER_MODES = ("local", "remote")


@dataclass(frozen=True)
class Settings:
    resolver_mode: str = "local"
    backend_base_url: Optional[str] = None
    reply_delay_seconds: float = 0.5
    request_timeout_seconds: float = 30.0
    cors_origins: Tuple[str, ...] = ("*",)
    log_level: str = "INFO"
    api_title: str = "Devbot Chat API"
    api_version: str = "1.0.0"


def _float_env(name: str, default: float) -> float:
    try:
        return max(0.0, float(os.getenv(name, str(default))))
    except ValueError:
        return default


def _cors_origins() -> Tuple[str, ...]:
    raw = os.getenv("CORS_ORIGINS", "*").strip()
    if not raw or raw == "*":
        return ("*",)
    return tuple(o.strip() for o in raw.split(",") if o.strip())


def get_settings() -> Settings:
    resolver_mode = os.getenv("DEVBOT_RESOLVER", "local").strip().lower() or "local"
    if resolver_mode not in RESOLVER_MODES:
        raise RuntimeError(
            f"DEVBOT_RESOLVER must be one of {', '.join(RESOLVER_MODES)}, got {resolver_mode!r}"
        )

    # Remote mode's backend URL is checked where the client is built, after CLI overrides
    return Settings(
        resolver_mode=resolver_mode,
        backend_base_url=os.getenv("DEVBOT_BACKEND_URL", "").strip() or None,
        reply_delay_seconds=_float_env("DEVBOT_REPLY_DELAY_SECONDS", 0.5),
        request_timeout_seconds=_float_env("DEVBOT_REQUEST_TIMEOUT_SECONDS", 30.0),
        cors_origins=_cors_origins(),
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
        api_title=os.getenv("API_TITLE", "Devbot Chat API").strip(),
        api_version=os.getenv("API_VERSION", "1.0.0").strip(),
    )
