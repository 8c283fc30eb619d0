"""Ordered OCR provider chain with failure aggregation."""

from __future__ import annotations

import logging
import threading
from typing import List, Optional, Sequence

import httpx

from slipscan import metrics
from slipscan.config import Settings
from slipscan.ocr.errors import OCRCancelled, OCRFailure, ProviderError, ProviderErrorKind
from slipscan.ocr.providers import (
    DemoProvider,
    GoogleVisionProvider,
    OcrProvider,
    OcrSpaceProvider,
    TesseractProvider,
)

logger = logging.getLogger(__name__)

MIN_TEXT_LENGTH = 10


class OcrProviderChain:
    """Try OCR providers strictly in priority order until one returns usable text.

    Providers are never retried and never run in parallel, so a quota is
    consumed at most once per provider per extraction. Providers that report
    themselves unsupported in the current runtime are skipped and logged but
    do not count as failures.
    """

    def __init__(
        self,
        providers: Sequence[OcrProvider],
        *,
        min_text_length: int = MIN_TEXT_LENGTH,
        timeout: Optional[float] = None,
    ) -> None:
        self._providers: List[OcrProvider] = list(providers)
        self._min_text_length = max(1, int(min_text_length))
        self._timeout = timeout

    @property
    def providers(self) -> List[OcrProvider]:
        return list(self._providers)

    def extract_text(
        self,
        payload: str,
        *,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> str:
        """Return raw OCR text from the first provider that yields usable output.

        Raises :class:`OCRFailure` listing every provider's error when the
        chain is exhausted, or :class:`OCRCancelled` when ``cancel_event`` is
        set before a provider succeeds.
        """

        effective_timeout = timeout if timeout is not None else self._timeout
        errors: List[ProviderError] = []
        skipped: List[str] = []

        for provider in self._providers:
            if cancel_event is not None and cancel_event.is_set():
                logger.info("OCR extraction cancelled before provider=%s", provider.name)
                raise OCRCancelled(errors, skipped=skipped)

            if not provider.is_supported():
                logger.info("Skipping OCR provider=%s: not supported in this runtime", provider.name)
                metrics.OCR_PROVIDER_ATTEMPTS.labels(provider=provider.name, outcome="skipped").inc()
                skipped.append(provider.name)
                continue

            logger.debug("Trying OCR provider=%s", provider.name)
            outcome = provider.try_extract(payload, timeout=effective_timeout)
            error = outcome.error
            if error is None:
                text = (outcome.text or "").strip()
                if len(text) >= self._min_text_length:
                    metrics.OCR_PROVIDER_ATTEMPTS.labels(
                        provider=provider.name, outcome="succeeded"
                    ).inc()
                    logger.info(
                        "OCR provider=%s returned %s characters", provider.name, len(text)
                    )
                    return text
                error = ProviderError(
                    provider.name,
                    ProviderErrorKind.NO_TEXT_DETECTED,
                    f"extracted text too short ({len(text)} < {self._min_text_length} characters)",
                )

            metrics.OCR_PROVIDER_ATTEMPTS.labels(
                provider=provider.name, outcome=error.kind.value
            ).inc()
            logger.warning(
                "OCR provider=%s failed kind=%s: %s",
                provider.name,
                error.kind.value,
                error.message,
                extra={"provider": provider.name},
            )
            errors.append(error)

        failure = OCRFailure(errors, skipped=skipped)
        logger.warning("OCR provider chain exhausted: %s", failure)
        raise failure


def build_provider(
    name: str,
    settings: Settings,
    *,
    client: Optional[httpx.Client] = None,
) -> OcrProvider:
    """Construct a single provider by configuration name."""

    normalized = name.strip().lower()
    if normalized == "ocr_space":
        return OcrSpaceProvider(
            api_key=settings.ocr_space_api_key,
            endpoint=settings.ocr_space_endpoint,
            language=settings.ocr_language,
            engine=settings.ocr_space_engine,
            client=client,
            timeout=settings.ocr_timeout,
        )
    if normalized == "google_vision":
        return GoogleVisionProvider(
            api_key=settings.google_vision_api_key,
            endpoint=settings.google_vision_endpoint,
            client=client,
            timeout=settings.ocr_timeout,
        )
    if normalized == "tesseract":
        return TesseractProvider(lang=settings.tesseract_lang)
    if normalized == "demo":
        return DemoProvider(environment=settings.environment)
    raise ValueError(f"Unknown OCR provider '{name}'")


def build_provider_chain(
    settings: Settings,
    *,
    client: Optional[httpx.Client] = None,
) -> OcrProviderChain:
    """Build the configured provider chain.

    The demo provider is appended last only when the environment is a
    development one and ``ocr_demo_enabled`` is set.
    """

    names = [name for name in settings.ocr_providers if name.strip().lower() != "demo"]
    if "demo" in (name.strip().lower() for name in settings.ocr_providers) or settings.ocr_demo_enabled:
        if not settings.is_development:
            raise ValueError(
                "The demo OCR provider cannot be enabled outside a development environment."
            )
        names.append("demo")

    providers = [build_provider(name, settings, client=client) for name in names]
    return OcrProviderChain(
        providers,
        min_text_length=settings.ocr_min_text_length,
        timeout=settings.ocr_timeout,
    )


__all__ = ["MIN_TEXT_LENGTH", "OcrProviderChain", "build_provider", "build_provider_chain"]
