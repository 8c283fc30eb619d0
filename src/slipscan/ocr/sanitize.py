"""Utilities for sanitizing OCR output."""

from __future__ import annotations

import re

# Card numbers carry 13 to 19 digits. A run may not end by spilling into a
# decimal price, so a barcode followed by its price is left alone.
_CARD_PATTERN = re.compile(r"(?<!\d)(?:\d[ -]?){13,19}(?!\d|[.,]\d)")
_LINE_NOISE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def mask_card_numbers(value: str) -> str:
    """Mask sensitive numeric sequences that resemble payment card numbers."""

    def _mask(match: re.Match[str]) -> str:
        digits = re.sub(r"\D", "", match.group())
        trailing = match.group()[len(match.group().rstrip(" -")):]
        return digits[:4] + "*" * (len(digits) - 8) + digits[-4:] + trailing

    return _CARD_PATTERN.sub(_mask, value)


def sanitize_text(value: str) -> str:
    """Normalise line endings, drop control characters and mask card numbers."""

    normalized = value.replace("\r\n", "\n").replace("\r", "\n")
    normalized = _LINE_NOISE.sub("", normalized)
    return mask_card_numbers(normalized)


__all__ = ["mask_card_numbers", "sanitize_text"]
