import os
from dataclasses import dataclass
from typing import Optional

from pagegen.services.text_wrap import WRAP_MODES


def env(key: str, default: Optional[str] = None, required: bool = False) -> str:
    value = os.getenv(key)
    if value is None or value == "":
        if required:
            raise RuntimeError(f"Missing required env var: {key}")
        return "" if default is None else str(default)
    return value


@dataclass(frozen=True)
class Settings:
    APP_ENV: str
    SERVICE_PORT: int
    INTERNAL_API_KEY: str
    FONT_FETCH_TIMEOUT_S: float
    BARCODE_SCALE: int
    WRAP_MODE: str
    DOCUMENT_AUTHOR: str
    STRICT_VALIDATION: bool


def load_settings() -> Settings:
    app_env = env("APP_ENV", default="development", required=False)
    service_port_raw = env("PORT", default=None, required=False) or env("SERVICE_PORT", default="9000", required=False)
    try:
        service_port = int(service_port_raw)
    except ValueError as e:
        raise RuntimeError("SERVICE_PORT must be an integer") from e

    try:
        fetch_timeout = float(env("FONT_FETCH_TIMEOUT_S", default="10"))
    except ValueError as e:
        raise RuntimeError("FONT_FETCH_TIMEOUT_S must be a number") from e
    if fetch_timeout <= 0:
        raise RuntimeError("FONT_FETCH_TIMEOUT_S must be > 0")

    try:
        barcode_scale = int(env("BARCODE_SCALE", default="5"))
    except ValueError as e:
        raise RuntimeError("BARCODE_SCALE must be an integer") from e
    if barcode_scale <= 0:
        raise RuntimeError("BARCODE_SCALE must be > 0")

    wrap_mode = env("WRAP_MODE", default="word").strip().lower()
    if wrap_mode not in WRAP_MODES:
        raise RuntimeError(f"WRAP_MODE must be one of: {', '.join(WRAP_MODES)}")

    strict_raw = env("STRICT_VALIDATION", default="false").strip().lower()
    if strict_raw not in {"1", "true", "yes", "0", "false", "no"}:
        raise RuntimeError("STRICT_VALIDATION must be true or false")

    return Settings(
        APP_ENV=app_env,
        SERVICE_PORT=service_port,
        INTERNAL_API_KEY=env("INTERNAL_API_KEY", required=True),
        FONT_FETCH_TIMEOUT_S=fetch_timeout,
        BARCODE_SCALE=barcode_scale,
        WRAP_MODE=wrap_mode,
        DOCUMENT_AUTHOR=env("DOCUMENT_AUTHOR", default="pagegen"),
        STRICT_VALIDATION=strict_raw in {"1", "true", "yes"},
    )
