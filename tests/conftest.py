"""Shared pytest fixtures for the Slipscan test suite."""

from __future__ import annotations

import io
import os
from datetime import date
from typing import Callable, Generator, List, Optional

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from PIL import Image

from slipscan.config import Settings, get_settings
from slipscan.ocr import OCRFailure, ProviderError, ReceiptOcrService, ReceiptTextParser
from slipscan.ocr.providers import SAMPLE_RECEIPT_TEXT
from slipscan.server import deps
from slipscan.server.app import create_app

FIXED_TODAY = date(2024, 3, 1)


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Keep host SLIPSCAN_* variables and .env files out of every test."""

    for key in list(os.environ):
        if key.startswith("SLIPSCAN_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    deps.get_receipt_service.cache_clear()
    yield
    get_settings.cache_clear()
    deps.get_receipt_service.cache_clear()


@pytest.fixture()
def png_bytes() -> bytes:
    image = Image.new("RGB", (32, 32), color=(255, 255, 255))
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture()
def sample_text() -> str:
    return SAMPLE_RECEIPT_TEXT


@pytest.fixture()
def fixed_clock() -> Callable[[], date]:
    return lambda: FIXED_TODAY


class StubChain:
    """Stands in for the provider chain; returns fixed text or raises."""

    def __init__(self, text: Optional[str] = None, errors: Optional[List[ProviderError]] = None):
        self.text = text
        self.errors = errors or []
        self.calls: list[dict] = []

    def extract_text(self, payload, *, timeout=None, cancel_event=None) -> str:
        self.calls.append({"payload": payload, "timeout": timeout})
        if self.text is None:
            raise OCRFailure(self.errors)
        return self.text


@pytest.fixture()
def stub_chain(sample_text) -> StubChain:
    return StubChain(text=sample_text)


@pytest.fixture()
def receipt_service(stub_chain, fixed_clock) -> ReceiptOcrService:
    return ReceiptOcrService(
        settings=Settings(),
        chain=stub_chain,
        parser=ReceiptTextParser(clock=fixed_clock),
    )


@pytest.fixture()
def app(receipt_service) -> Generator[FastAPI, None, None]:
    """Create a new FastAPI app instance wired to the stubbed OCR service."""

    application = create_app()
    application.dependency_overrides[deps.get_receipt_service] = lambda: receipt_service
    yield application
    application.dependency_overrides.clear()


@pytest.fixture()
def client(app) -> TestClient:
    """Return a test client bound to the FastAPI app."""

    return TestClient(app)
