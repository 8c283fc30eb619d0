"""Application configuration helpers."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

ENV_FILE_CANDIDATES = (Path(".env"), Path(".env.local"))

DEFAULT_PROVIDERS = ("ocr_space", "google_vision", "tesseract")


class Settings(BaseModel):
    """Global settings loaded from environment variables or .env files."""

    environment: str = Field(
        default="production",
        description="Deployment environment (production/development).",
    )
    log_level: str = Field(default="INFO", description="Logging level (DEBUG/INFO/WARNING/ERROR)")
    log_format: str = Field(
        default="plain",
        description="Logging format (plain/json).",
    )
    log_requests: bool = Field(
        default=True,
        description="Emit request access logs when true.",
    )
    ocr_providers: tuple[str, ...] = Field(
        default=DEFAULT_PROVIDERS,
        description="OCR providers in priority order.",
    )
    ocr_space_api_key: Optional[str] = Field(
        default=None,
        description="API key for the OCR.space backend.",
    )
    ocr_space_endpoint: str = Field(
        default="https://api.ocr.space/parse/image",
        description="OCR.space parse endpoint.",
    )
    ocr_space_engine: int = Field(
        default=2,
        description="OCR.space engine number.",
    )
    ocr_language: str = Field(
        default="eng",
        description="Language code sent to hosted OCR backends.",
    )
    google_vision_api_key: Optional[str] = Field(
        default=None,
        description="API key for Google Cloud Vision text detection.",
    )
    google_vision_endpoint: str = Field(
        default="https://vision.googleapis.com/v1/images:annotate",
        description="Google Cloud Vision annotate endpoint.",
    )
    tesseract_lang: str = Field(
        default="eng",
        description="Tesseract language code for local OCR.",
    )
    ocr_timeout: float = Field(
        default=30.0,
        description="Seconds allowed for each OCR provider request.",
    )
    ocr_min_text_length: int = Field(
        default=10,
        description="Minimum number of characters for OCR output to count as usable.",
    )
    ocr_demo_enabled: bool = Field(
        default=False,
        description="Append the sample-receipt demo provider (development only).",
    )
    default_currency: str = Field(
        default="USD",
        description="Currency code used when the caller does not provide one.",
    )
    max_upload_bytes: int = Field(
        default=5 * 1024 * 1024,
        description="Largest receipt upload accepted by the HTTP API.",
    )
    server_host: str = Field(default="127.0.0.1", description="Interface the HTTP API binds to.")
    server_port: int = Field(default=8000, description="Port the HTTP API listens on.")
    server_reload: bool = Field(
        default=False,
        description="Restart the HTTP API on code changes (development only).",
    )
    server_duration: Optional[float] = Field(
        default=None,
        description="Stop the HTTP API after this many seconds; runs until interrupted when unset.",
    )

    model_config = ConfigDict(frozen=True)

    @property
    def is_development(self) -> bool:
        return self.environment.strip().lower() in {"development", "dev", "local"}

    def secrets(self) -> list[str]:
        """Return configured credentials that must never reach the logs."""

        return [value for value in (self.ocr_space_api_key, self.google_vision_api_key) if value]


def _coerce_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _split_names(value: str) -> tuple[str, ...]:
    return tuple(part.strip().lower() for part in value.split(",") if part.strip())


def _parse_env_file(path: Path) -> dict[str, str]:
    payload: dict[str, str] = {}
    try:
        with path.open("r", encoding="utf-8") as handle:
            for raw_line in handle:
                line = raw_line.strip()
                if not line or line.startswith("#") or "=" not in line:
                    continue
                key, raw_value = line.split("=", 1)
                payload[key.strip()] = raw_value.strip()
    except FileNotFoundError:
        return {}
    return payload


def _load_env_file_values() -> dict[str, str]:
    values: dict[str, str] = {}
    for candidate in ENV_FILE_CANDIDATES:
        values.update(_parse_env_file(candidate))
    return values


def _load_from_env() -> dict[str, object]:
    """Load optional overrides from env vars (with .env fallbacks)."""

    file_values = _load_env_file_values()

    def _env(key: str) -> Optional[str]:
        return os.environ.get(key) or file_values.get(key)

    payload: dict[str, object] = {}
    if (environment := _env("SLIPSCAN_ENV")):
        payload["environment"] = environment
    if (log_level := _env("SLIPSCAN_LOG_LEVEL")):
        payload["log_level"] = log_level
    if (log_format := _env("SLIPSCAN_LOG_FORMAT")):
        payload["log_format"] = log_format
    if (log_requests := _env("SLIPSCAN_LOG_REQUESTS")):
        payload["log_requests"] = _coerce_bool(log_requests)
    if (providers := _env("SLIPSCAN_OCR_PROVIDERS")):
        names = _split_names(providers)
        if names:
            payload["ocr_providers"] = names
    if (ocr_space_key := _env("SLIPSCAN_OCR_SPACE_API_KEY")):
        payload["ocr_space_api_key"] = ocr_space_key
    if (ocr_space_endpoint := _env("SLIPSCAN_OCR_SPACE_ENDPOINT")):
        payload["ocr_space_endpoint"] = ocr_space_endpoint
    if (ocr_space_engine := _env("SLIPSCAN_OCR_SPACE_ENGINE")):
        try:
            payload["ocr_space_engine"] = int(ocr_space_engine)
        except ValueError:
            pass
    if (ocr_language := _env("SLIPSCAN_OCR_LANGUAGE")):
        payload["ocr_language"] = ocr_language
    if (vision_key := _env("SLIPSCAN_GOOGLE_VISION_API_KEY")):
        payload["google_vision_api_key"] = vision_key
    if (vision_endpoint := _env("SLIPSCAN_GOOGLE_VISION_ENDPOINT")):
        payload["google_vision_endpoint"] = vision_endpoint
    if (tesseract_lang := _env("SLIPSCAN_TESSERACT_LANG")):
        payload["tesseract_lang"] = tesseract_lang
    if (ocr_timeout := _env("SLIPSCAN_OCR_TIMEOUT")):
        try:
            payload["ocr_timeout"] = float(ocr_timeout)
        except ValueError:
            pass
    if (min_text := _env("SLIPSCAN_OCR_MIN_TEXT_LENGTH")):
        try:
            payload["ocr_min_text_length"] = int(min_text)
        except ValueError:
            pass
    if (demo_enabled := _env("SLIPSCAN_OCR_DEMO_ENABLED")):
        payload["ocr_demo_enabled"] = _coerce_bool(demo_enabled)
    if (currency := _env("SLIPSCAN_DEFAULT_CURRENCY")):
        payload["default_currency"] = currency.strip().upper()
    if (max_upload := _env("SLIPSCAN_MAX_UPLOAD_BYTES")):
        try:
            payload["max_upload_bytes"] = int(max_upload)
        except ValueError:
            pass
    if (server_host := _env("SLIPSCAN_SERVER_HOST")):
        payload["server_host"] = server_host
    if (server_port := _env("SLIPSCAN_SERVER_PORT")):
        try:
            payload["server_port"] = int(server_port)
        except ValueError:
            pass
    if (server_reload := _env("SLIPSCAN_SERVER_RELOAD")):
        payload["server_reload"] = _coerce_bool(server_reload)
    if (server_duration := _env("SLIPSCAN_SERVER_DURATION")):
        try:
            duration = float(server_duration)
        except ValueError:
            duration = 0.0
        if duration > 0:
            payload["server_duration"] = duration
    return payload


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings."""

    return Settings(**_load_from_env())
