"""Dependency definitions for the Slipscan API server."""

from __future__ import annotations

from functools import lru_cache

from slipscan.config import get_settings
from slipscan.ocr import ReceiptOcrService


@lru_cache
def get_receipt_service() -> ReceiptOcrService:
    """Return the process-wide OCR service built from the cached settings."""

    return ReceiptOcrService(settings=get_settings())


__all__ = ["get_receipt_service"]
