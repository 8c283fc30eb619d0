"""OCR backends that can be composed into a provider chain."""

from __future__ import annotations

import io
import logging
import re
import shutil
from dataclasses import dataclass
from typing import Any, Optional

import httpx
from PIL import Image, ImageFilter, ImageOps, UnidentifiedImageError

try:  # pragma: no cover - import guarded for environments without pytesseract
    import pytesseract
except ImportError:  # pragma: no cover
    pytesseract = None  # type: ignore[assignment]

from slipscan.ocr.encoder import decode_payload, to_data_uri
from slipscan.ocr.errors import EncodingError, ProviderError, ProviderErrorKind

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0

_QUOTA_HINT = re.compile(r"\b(quota|limit|exceed(?:ed)?|too many requests)\b", re.IGNORECASE)


@dataclass(frozen=True)
class ProviderOutcome:
    """Result of one provider attempt: either text or the error that stopped it."""

    provider: str
    text: Optional[str] = None
    error: Optional[ProviderError] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.text is not None


class OcrProvider:
    """Base class for OCR backends.

    Subclasses implement :meth:`extract`, raising :class:`ProviderError` with
    the appropriate kind when they cannot produce text.
    """

    name = "provider"

    def is_supported(self) -> bool:
        return True

    def extract(self, payload: str, *, timeout: Optional[float] = None) -> str:
        raise NotImplementedError

    def try_extract(self, payload: str, *, timeout: Optional[float] = None) -> ProviderOutcome:
        try:
            text = self.extract(payload, timeout=timeout)
        except ProviderError as exc:
            return ProviderOutcome(provider=self.name, error=exc)
        return ProviderOutcome(provider=self.name, text=text)

    def _error(self, kind: ProviderErrorKind, message: str) -> ProviderError:
        return ProviderError(self.name, kind, message)


class _HttpProvider(OcrProvider):
    def __init__(self, *, client: Optional[httpx.Client], timeout: float) -> None:
        self._client = client
        self._timeout = timeout

    def _post(self, url: str, *, timeout: Optional[float], **kwargs: Any) -> httpx.Response:
        effective_timeout = timeout if timeout is not None else self._timeout
        try:
            if self._client is not None:
                response = self._client.post(url, timeout=effective_timeout, **kwargs)
            else:
                with httpx.Client(timeout=effective_timeout) as client:
                    response = client.post(url, **kwargs)
        except httpx.TimeoutException as exc:
            raise self._error(
                ProviderErrorKind.NETWORK_FAILURE, f"request timed out after {effective_timeout}s"
            ) from exc
        except httpx.HTTPError as exc:
            raise self._error(ProviderErrorKind.NETWORK_FAILURE, str(exc) or type(exc).__name__) from exc

        if response.status_code in (403, 429):
            raise self._error(
                ProviderErrorKind.QUOTA_EXCEEDED,
                f"HTTP {response.status_code}: {response.text[:200]}",
            )
        if response.status_code >= 400:
            raise self._error(
                ProviderErrorKind.NETWORK_FAILURE,
                f"HTTP {response.status_code}: {response.text[:200]}",
            )
        return response

    def _json(self, response: httpx.Response) -> dict[str, Any]:
        try:
            body = response.json()
        except ValueError as exc:
            raise self._error(
                ProviderErrorKind.PROCESSING_FAILED, "response body is not valid JSON"
            ) from exc
        if not isinstance(body, dict):
            raise self._error(ProviderErrorKind.PROCESSING_FAILED, "unexpected response shape")
        return body


class OcrSpaceProvider(_HttpProvider):
    """Hosted OCR via the OCR.space parse endpoint."""

    name = "ocr_space"

    def __init__(
        self,
        *,
        api_key: Optional[str],
        endpoint: str = "https://api.ocr.space/parse/image",
        language: str = "eng",
        engine: int = 2,
        client: Optional[httpx.Client] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        super().__init__(client=client, timeout=timeout)
        self._api_key = (api_key or "").strip()
        self._endpoint = endpoint
        self._language = language
        self._engine = engine

    def build_form(self, payload: str) -> dict[str, str]:
        return {
            "base64Image": to_data_uri(payload),
            "language": self._language,
            "isOverlayRequired": "false",
            "detectOrientation": "true",
            "scale": "true",
            "OCREngine": str(self._engine),
            "apikey": self._api_key,
        }

    def extract(self, payload: str, *, timeout: Optional[float] = None) -> str:
        if not self._api_key:
            raise self._error(ProviderErrorKind.CONFIG_MISSING, "OCR.space API key is not configured")
        try:
            form = self.build_form(payload)
        except EncodingError as exc:
            raise self._error(ProviderErrorKind.PROCESSING_FAILED, str(exc)) from exc

        # Every field is sent as its own multipart part.
        multipart = {key: (None, value.encode("utf-8")) for key, value in form.items()}
        response = self._post(self._endpoint, timeout=timeout, files=multipart)
        return self._parse_response(self._json(response))

    def _parse_response(self, body: dict[str, Any]) -> str:
        exit_code = body.get("OCRExitCode")
        error_message = _join_messages(body.get("ErrorMessage")) or _join_messages(
            body.get("ErrorDetails")
        )
        try:
            exit_code = int(exit_code)
        except (TypeError, ValueError):
            exit_code = None

        if exit_code == 99:
            raise self._error(ProviderErrorKind.QUOTA_EXCEEDED, error_message or "quota exceeded")
        if exit_code in (3, 4):
            if error_message and _QUOTA_HINT.search(error_message):
                raise self._error(ProviderErrorKind.QUOTA_EXCEEDED, error_message)
            raise self._error(
                ProviderErrorKind.NO_TEXT_DETECTED, error_message or "no text detected"
            )
        if exit_code == 2:
            raise self._error(
                ProviderErrorKind.PROCESSING_FAILED, error_message or "image processing failed"
            )
        if exit_code != 1:
            if body.get("IsErroredOnProcessing") and error_message and _QUOTA_HINT.search(error_message):
                raise self._error(ProviderErrorKind.QUOTA_EXCEEDED, error_message)
            raise self._error(
                ProviderErrorKind.PROCESSING_FAILED,
                error_message or f"unexpected OCRExitCode {body.get('OCRExitCode')!r}",
            )

        results = body.get("ParsedResults") or []
        texts = [
            str(result.get("ParsedText") or "")
            for result in results
            if isinstance(result, dict)
        ]
        return "\n".join(text for text in texts if text.strip())


class GoogleVisionProvider(_HttpProvider):
    """Hosted OCR via Google Cloud Vision TEXT_DETECTION."""

    name = "google_vision"

    def __init__(
        self,
        *,
        api_key: Optional[str],
        endpoint: str = "https://vision.googleapis.com/v1/images:annotate",
        client: Optional[httpx.Client] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        super().__init__(client=client, timeout=timeout)
        self._api_key = (api_key or "").strip()
        self._endpoint = endpoint

    def extract(self, payload: str, *, timeout: Optional[float] = None) -> str:
        if not self._api_key:
            raise self._error(
                ProviderErrorKind.CONFIG_MISSING, "Google Vision API key is not configured"
            )
        content = payload.split(",", 1)[1] if payload.startswith("data:") else payload
        request_body = {
            "requests": [
                {
                    "image": {"content": content},
                    "features": [{"type": "TEXT_DETECTION", "maxResults": 1}],
                }
            ]
        }
        response = self._post(
            self._endpoint,
            timeout=timeout,
            params={"key": self._api_key},
            json=request_body,
        )
        body = self._json(response)
        responses = body.get("responses") or []
        if not responses or not isinstance(responses[0], dict):
            raise self._error(ProviderErrorKind.NO_TEXT_DETECTED, "empty annotate response")
        first = responses[0]

        error = first.get("error") or {}
        if error:
            message = str(error.get("message") or "annotate request failed")
            if error.get("status") == "RESOURCE_EXHAUSTED" or error.get("code") == 8:
                raise self._error(ProviderErrorKind.QUOTA_EXCEEDED, message)
            raise self._error(ProviderErrorKind.PROCESSING_FAILED, message)

        full_text = (first.get("fullTextAnnotation") or {}).get("text")
        if full_text:
            return str(full_text)
        annotations = first.get("textAnnotations") or []
        if annotations and isinstance(annotations[0], dict):
            return str(annotations[0].get("description") or "")
        raise self._error(ProviderErrorKind.NO_TEXT_DETECTED, "no text annotations returned")


class TesseractProvider(OcrProvider):
    """Local OCR using the Tesseract engine."""

    name = "tesseract"

    def __init__(self, *, lang: str = "eng") -> None:
        self._lang = lang

    def is_supported(self) -> bool:
        return pytesseract is not None and shutil.which("tesseract") is not None

    def extract(self, payload: str, *, timeout: Optional[float] = None) -> str:
        try:
            raw = decode_payload(payload)
            image = Image.open(io.BytesIO(raw))
            image.load()
        except (EncodingError, UnidentifiedImageError, OSError) as exc:
            raise self._error(ProviderErrorKind.PROCESSING_FAILED, f"unreadable image: {exc}") from exc

        processed = self._preprocess_image(image)
        try:
            text = pytesseract.image_to_string(processed, lang=self._lang, timeout=timeout or 0)
        except RuntimeError as exc:
            # pytesseract raises RuntimeError when its timeout kills the process.
            raise self._error(ProviderErrorKind.NETWORK_FAILURE, f"tesseract timed out: {exc}") from exc
        except Exception as exc:
            raise self._error(ProviderErrorKind.PROCESSING_FAILED, str(exc)) from exc
        return text or ""

    @staticmethod
    def _preprocess_image(image: Image.Image) -> Image.Image:
        processed = ImageOps.grayscale(image)
        processed = ImageOps.autocontrast(processed)
        return processed.filter(ImageFilter.MedianFilter(size=3))


SAMPLE_RECEIPT_TEXT = """SHOPRITE SUPERMARKET
123 Main Street, Harare
Tel: +263 4 123 4567

Date: 2024-01-15
Time: 14:30
Cashier: John

BREAD WHITE LOAF        2.50
MILK 2L                 3.75
EGGS DOZEN              4.20
SUGAR 1KG               2.10
RICE 2KG                5.50

SUBTOTAL               18.05
TAX (15%)               2.71
TOTAL                  20.76

CASH                   25.00
CHANGE                  4.24

Thank you for shopping!
Visit us again soon."""


class DemoProvider(OcrProvider):
    """Returns a canned sample receipt. Development environments only."""

    name = "demo"

    def __init__(self, *, environment: str) -> None:
        if environment.strip().lower() not in {"development", "dev", "local"}:
            raise ValueError("The demo OCR provider is only available in development environments.")

    def extract(self, payload: str, *, timeout: Optional[float] = None) -> str:
        logger.warning("Returning sample receipt text from the demo OCR provider")
        return SAMPLE_RECEIPT_TEXT


def _join_messages(value: Any) -> str:
    if not value:
        return ""
    if isinstance(value, (list, tuple)):
        return "; ".join(str(entry) for entry in value if entry)
    return str(value)


__all__ = [
    "DemoProvider",
    "GoogleVisionProvider",
    "OcrProvider",
    "OcrSpaceProvider",
    "ProviderOutcome",
    "SAMPLE_RECEIPT_TEXT",
    "TesseractProvider",
]
