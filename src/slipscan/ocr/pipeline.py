"""Receipt OCR pipeline: encode, extract, parse and classify."""

from __future__ import annotations

import logging
import threading
from typing import Optional

import httpx

from slipscan import metrics
from slipscan.config import Settings, get_settings
from slipscan.models.receipt import ReceiptData
from slipscan.ocr.categories import CategoryClassifier
from slipscan.ocr.chain import OcrProviderChain, build_provider_chain
from slipscan.ocr.encoder import ImageEncoder, encode_bytes
from slipscan.ocr.errors import EncodingError, OCRFailure
from slipscan.ocr.parser import ReceiptTextParser, normalize_currency
from slipscan.ocr.sanitize import sanitize_text

logger = logging.getLogger(__name__)


class ReceiptOcrService:
    """Synchronous pipeline turning one receipt image into one ``ReceiptData``.

    The service holds no per-receipt state, so one instance may serve
    concurrent calls. When an ``httpx.Client`` is injected it is shared by the
    encoder and the hosted OCR providers and is not closed by the service.
    """

    def __init__(
        self,
        *,
        settings: Optional[Settings] = None,
        encoder: Optional[ImageEncoder] = None,
        chain: Optional[OcrProviderChain] = None,
        parser: Optional[ReceiptTextParser] = None,
        classifier: Optional[CategoryClassifier] = None,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._encoder = encoder or ImageEncoder(client=client)
        self._chain = chain or build_provider_chain(self._settings, client=client)
        self._parser = parser or ReceiptTextParser()
        self._classifier = classifier or CategoryClassifier()

    def process_receipt(
        self,
        image_ref: str,
        currency: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ReceiptData:
        """Run the full pipeline against an image URL or filesystem path.

        Raises :class:`EncodingError` when the image cannot be read and
        :class:`OCRFailure` when every OCR provider failed.
        """

        code = self._currency(currency)
        logger.debug("Starting OCR processing for image_ref=%s", image_ref)
        try:
            payload = self._encoder.encode(image_ref)
        except EncodingError:
            metrics.OCR_JOBS.labels(status="unreadable").inc()
            raise
        return self._run(payload, code, timeout=timeout, cancel_event=cancel_event)

    def process_bytes(
        self,
        raw: bytes,
        currency: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> ReceiptData:
        """Run the pipeline against an image already held in memory."""

        code = self._currency(currency)
        if not raw:
            metrics.OCR_JOBS.labels(status="unreadable").inc()
            raise EncodingError("<upload>", "resource is empty")
        return self._run(encode_bytes(raw), code, timeout=timeout, cancel_event=cancel_event)

    def parse_text(self, text: str, currency: Optional[str] = None) -> ReceiptData:
        """Parse and classify OCR text captured elsewhere."""

        data = self._parser.parse(sanitize_text(text), self._currency(currency))
        category = self._classifier.classify(data.merchant)
        if category is None:
            return data
        return ReceiptData.model_validate({**data.model_dump(), "category": category})

    def _currency(self, currency: Optional[str]) -> str:
        return normalize_currency(currency or self._settings.default_currency)

    def _run(
        self,
        payload: str,
        currency: str,
        *,
        timeout: Optional[float],
        cancel_event: Optional[threading.Event],
    ) -> ReceiptData:
        try:
            text = self._chain.extract_text(payload, timeout=timeout, cancel_event=cancel_event)
        except OCRFailure as exc:
            metrics.OCR_JOBS.labels(status="failed").inc()
            logger.warning("OCR failed: %s", exc)
            raise

        result = self.parse_text(text, currency)
        metrics.OCR_JOBS.labels(status="succeeded").inc()
        logger.info(
            "OCR succeeded merchant=%r amount=%s items=%s category=%s",
            result.merchant,
            result.amount,
            len(result.items),
            result.category,
        )
        return result


__all__ = ["ReceiptOcrService"]
