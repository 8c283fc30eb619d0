"""Receipt OCR pipeline utilities."""

from .categories import CategoryClassifier, classify_merchant
from .chain import OcrProviderChain, build_provider_chain
from .encoder import ImageEncoder
from .errors import (
    EncodingError,
    OCRCancelled,
    OCRFailure,
    ProviderError,
    ProviderErrorKind,
    SlipscanError,
)
from .parser import ReceiptTextParser, parse_receipt_text
from .pipeline import ReceiptOcrService

__all__ = [
    "CategoryClassifier",
    "EncodingError",
    "ImageEncoder",
    "OCRCancelled",
    "OCRFailure",
    "OcrProviderChain",
    "ProviderError",
    "ProviderErrorKind",
    "ReceiptOcrService",
    "ReceiptTextParser",
    "SlipscanError",
    "build_provider_chain",
    "classify_merchant",
    "parse_receipt_text",
]
