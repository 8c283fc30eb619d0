"""Exception types raised by the receipt OCR pipeline."""

from __future__ import annotations

import enum
from typing import Iterable, List, Sequence


class SlipscanError(RuntimeError):
    """Base class for every error raised by the receipt pipeline."""


class EncodingError(SlipscanError):
    """Raised when an image reference cannot be read into a base64 payload."""

    def __init__(self, image_ref: str, reason: str) -> None:
        super().__init__(f"Unable to read image {image_ref!r}: {reason}")
        self.image_ref = image_ref
        self.reason = reason


class ProviderErrorKind(str, enum.Enum):
    CONFIG_MISSING = "config_missing"
    QUOTA_EXCEEDED = "quota_exceeded"
    NETWORK_FAILURE = "network_failure"
    NO_TEXT_DETECTED = "no_text_detected"
    PROCESSING_FAILED = "processing_failed"


class ProviderError(SlipscanError):
    """A single OCR provider failed to produce usable text."""

    def __init__(self, provider: str, kind: ProviderErrorKind, message: str) -> None:
        super().__init__(f"{provider}: {kind.value}: {message}")
        self.provider = provider
        self.kind = kind
        self.message = message

    def as_dict(self) -> dict[str, str]:
        return {"provider": self.provider, "kind": self.kind.value, "message": self.message}


_REMEDIATION = {
    ProviderErrorKind.QUOTA_EXCEEDED: (
        "The OCR service quota is exhausted. Wait for the quota to reset or upgrade the plan."
    ),
    ProviderErrorKind.NETWORK_FAILURE: (
        "The OCR service could not be reached. Check the network connection and try again."
    ),
    ProviderErrorKind.CONFIG_MISSING: (
        "No OCR credentials are configured. Set an API key for at least one OCR provider."
    ),
    ProviderErrorKind.NO_TEXT_DETECTED: (
        "No readable text was found. Retake the photo in better light or enter the receipt manually."
    ),
    ProviderErrorKind.PROCESSING_FAILED: (
        "The OCR service could not process the image. Try a clearer photo or enter the receipt manually."
    ),
}

# Most actionable hint first when several providers failed for different reasons.
_REMEDIATION_ORDER = (
    ProviderErrorKind.QUOTA_EXCEEDED,
    ProviderErrorKind.NETWORK_FAILURE,
    ProviderErrorKind.CONFIG_MISSING,
    ProviderErrorKind.PROCESSING_FAILED,
    ProviderErrorKind.NO_TEXT_DETECTED,
)


class OCRFailure(SlipscanError):
    """Every provider in the chain failed; carries each provider's reason."""

    def __init__(
        self,
        errors: Sequence[ProviderError],
        *,
        skipped: Iterable[str] = (),
        message: str | None = None,
    ) -> None:
        self.errors: List[ProviderError] = list(errors)
        self.skipped: List[str] = list(skipped)
        if message is None:
            if self.errors:
                reasons = "; ".join(
                    f"{error.provider} ({error.kind.value}): {error.message}" for error in self.errors
                )
                message = f"All OCR providers failed: {reasons}"
            else:
                message = "No OCR provider is available in this environment."
        super().__init__(message)

    @property
    def kinds(self) -> set[ProviderErrorKind]:
        return {error.kind for error in self.errors}

    @property
    def quota_exceeded(self) -> bool:
        return ProviderErrorKind.QUOTA_EXCEEDED in self.kinds

    @property
    def network_failure(self) -> bool:
        return ProviderErrorKind.NETWORK_FAILURE in self.kinds

    @property
    def config_missing(self) -> bool:
        return ProviderErrorKind.CONFIG_MISSING in self.kinds

    @property
    def no_text(self) -> bool:
        return ProviderErrorKind.NO_TEXT_DETECTED in self.kinds

    def remediation(self) -> str:
        """Return a human-facing hint describing how to recover."""

        kinds = self.kinds
        for kind in _REMEDIATION_ORDER:
            if kind in kinds:
                return _REMEDIATION[kind]
        return "No OCR provider is available. Enable a provider or enter the receipt manually."

    def as_dict(self) -> dict[str, object]:
        return {
            "detail": str(self),
            "providers": [error.as_dict() for error in self.errors],
            "skipped": list(self.skipped),
            "remediation": self.remediation(),
        }


class OCRCancelled(OCRFailure):
    """The caller cancelled extraction before a provider returned text."""

    def __init__(self, errors: Sequence[ProviderError] = (), *, skipped: Iterable[str] = ()) -> None:
        super().__init__(errors, skipped=skipped, message="OCR extraction was cancelled.")

    def remediation(self) -> str:
        return "Extraction was cancelled before any provider returned text."


__all__ = [
    "EncodingError",
    "OCRCancelled",
    "OCRFailure",
    "ProviderError",
    "ProviderErrorKind",
    "SlipscanError",
]
