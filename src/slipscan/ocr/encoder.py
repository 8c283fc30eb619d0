"""Convert receipt image references into base64 payloads."""

from __future__ import annotations

import base64
import binascii
import io
import logging
from pathlib import Path
from typing import Optional

import httpx
from PIL import Image, UnidentifiedImageError

from slipscan.ocr.errors import EncodingError

logger = logging.getLogger(__name__)

FETCH_TIMEOUT = 15.0
DEFAULT_MIME_TYPE = "image/jpeg"

_FORMAT_MIME_TYPES = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "GIF": "image/gif",
    "BMP": "image/bmp",
    "TIFF": "image/tiff",
    "WEBP": "image/webp",
}


class ImageEncoder:
    """Read an image reference (URL or path) and return it base64 encoded.

    The reference is first fetched over HTTP; when that raises (for example a
    plain filesystem path, which httpx rejects as an unsupported protocol) the
    file is read directly from disk instead.
    """

    def __init__(
        self,
        *,
        client: Optional[httpx.Client] = None,
        timeout: float = FETCH_TIMEOUT,
    ) -> None:
        self._client = client
        self._timeout = timeout

    def encode(self, image_ref: str) -> str:
        if not isinstance(image_ref, str) or not image_ref.strip():
            raise EncodingError(str(image_ref), "image reference is empty")
        reference = image_ref.strip()

        try:
            raw = self._fetch(reference)
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
            logger.debug("Fetching %s failed (%s); reading from filesystem", reference, exc)
            raw = self._read_file(reference)

        if not raw:
            raise EncodingError(reference, "resource is empty")
        return encode_bytes(raw)

    def _fetch(self, reference: str) -> bytes:
        if self._client is not None:
            response = self._client.get(reference, timeout=self._timeout)
        else:
            with httpx.Client(timeout=self._timeout, follow_redirects=True) as client:
                response = client.get(reference)
        response.raise_for_status()
        return response.content

    @staticmethod
    def _read_file(reference: str) -> bytes:
        path_text = reference[len("file://"):] if reference.startswith("file://") else reference
        path = Path(path_text).expanduser()
        try:
            return path.read_bytes()
        except OSError as exc:
            raise EncodingError(reference, str(exc)) from exc


def encode_bytes(raw: bytes) -> str:
    """Base64-encode raw image bytes for network transmission."""

    return base64.b64encode(raw).decode("ascii")


def decode_payload(payload: str) -> bytes:
    """Decode a base64 payload (optionally a data URI) back to bytes."""

    if payload.startswith("data:") and "," in payload:
        payload = payload.split(",", 1)[1]
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise EncodingError("<payload>", f"invalid base64 payload: {exc}") from exc


def detect_mime_type(raw: bytes) -> str:
    try:
        with Image.open(io.BytesIO(raw)) as image:
            image_format = (image.format or "").upper()
    except (UnidentifiedImageError, OSError):
        return DEFAULT_MIME_TYPE
    return _FORMAT_MIME_TYPES.get(image_format, DEFAULT_MIME_TYPE)


def to_data_uri(payload: str) -> str:
    """Wrap a base64 payload in a data URI carrying the sniffed image type."""

    if payload.startswith("data:"):
        return payload
    mime_type = detect_mime_type(decode_payload(payload))
    return f"data:{mime_type};base64,{payload}"


__all__ = ["ImageEncoder", "decode_payload", "detect_mime_type", "encode_bytes", "to_data_uri"]
