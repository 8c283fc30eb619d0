"""Logging setup for slipscan: plain or JSON output, OCR credentials redacted."""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone
from typing import Iterable

REDACTED = "[redacted]"

# OCR.space takes its key as an ``apikey`` form field, Google Vision as a
# ``key`` query parameter.
CREDENTIAL_PATTERNS = (
    re.compile(r"(Bearer\s+)[A-Za-z0-9\-._~+/=]+", re.IGNORECASE),
    re.compile(r"(apikey[=:]\s*)[^&\s,]+", re.IGNORECASE),
    re.compile(r"([?&]key=)[^&\s]+", re.IGNORECASE),
)

# Extra record attributes slipscan attaches and the JSON formatter emits.
CONTEXT_FIELDS = ("request_id", "provider")


def redact(value: str, secrets: Iterable[str] = ()) -> str:
    for pattern in CREDENTIAL_PATTERNS:
        value = pattern.sub(r"\1" + REDACTED, value)
    for secret in secrets:
        if secret.strip():
            value = value.replace(secret, REDACTED)
    return value


class SensitiveDataFilter(logging.Filter):
    """Rewrite records so configured API keys never reach a handler."""

    def __init__(self, secrets: Iterable[str]):
        super().__init__()
        self._secrets = tuple(s.strip() for s in secrets if s and s.strip())

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        cleaned = redact(message, self._secrets)
        if cleaned != message:
            record.msg = cleaned
            record.args = ()
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if isinstance(value, str):
                setattr(record, field, redact(value, self._secrets))
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in CONTEXT_FIELDS:
            if value := getattr(record, field, None):
                payload[field] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True)


def configure_logging(level_name: str, fmt: str, secrets: Iterable[str]) -> None:
    """Install one redacting stream handler on the root logger.

    uvicorn and httpx loggers are routed through the same handler, since httpx
    logs request URLs that may carry a Vision ``key`` parameter.
    """

    level = getattr(logging, level_name.upper(), logging.INFO)
    handler = logging.StreamHandler()
    if (fmt or "plain").lower() == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
                datefmt="%Y-%m-%dT%H:%M:%S%z",
            )
        )
    handler.addFilter(SensitiveDataFilter(secrets))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access", "httpx"):
        library_logger = logging.getLogger(name)
        library_logger.handlers = []
        library_logger.setLevel(level)
        library_logger.propagate = True
