"""Heuristic receipt text parser."""

from __future__ import annotations

import logging
import re
from datetime import date
from typing import Callable, List, Optional, Sequence

from slipscan.models.receipt import ReceiptData
from slipscan.ocr.matchers import (
    DATE_MATCHERS,
    FALLBACK_ITEM_MATCHERS,
    ITEM_HEADER_KEYWORDS,
    ITEM_SKIP_KEYWORDS,
    PAYMENT_KEYWORDS,
    SINGLE_ITEM_MATCHERS,
    TOTAL_LABEL_MATCHERS,
    TOTAL_POSITIONAL_MATCHERS,
    ParsedItem,
    contains_keyword,
    count_multi_item_groups,
    is_valid_amount,
    match_address,
    match_merchant,
    match_multi_items,
    match_subtotal,
    match_tax,
    same_amount,
)

logger = logging.getLogger(__name__)

HEADER_WINDOW = 10
TRAILER_WINDOW = 15

_CURRENCY_CODE = re.compile(r"^[A-Z]{3}$")


def normalize_lines(text: str) -> List[str]:
    """Split OCR text into trimmed, non-empty lines preserving order."""

    lines = [line.strip() for line in text.splitlines()]
    return [line for line in lines if line]


def normalize_currency(currency: str) -> str:
    if not isinstance(currency, str):
        raise TypeError(f"currency must be a string, not {type(currency).__name__}")
    code = currency.strip().upper()
    if not _CURRENCY_CODE.match(code):
        raise ValueError(f"currency must be a 3-letter code, got {currency!r}")
    return code


class ReceiptTextParser:
    """Turn raw OCR receipt text into a :class:`ReceiptData` record.

    Each field is resolved independently; a field the heuristics cannot find
    is left empty rather than failing the parse. Only ``merchant``, ``date``
    and ``amount`` fall back to defaults (first line, today's date from the
    injected clock, and the sum of the extracted items).
    """

    def __init__(self, *, clock: Callable[[], date] = date.today) -> None:
        self._clock = clock

    def parse(self, text: str, currency: str = "USD") -> ReceiptData:
        if not isinstance(text, str):
            raise TypeError(f"receipt text must be a string, not {type(text).__name__}")
        code = normalize_currency(currency)
        lines = normalize_lines(text)

        merchant_index = match_merchant(lines)
        if merchant_index is None and lines:
            merchant_index = 0
        merchant = lines[merchant_index] if merchant_index is not None else None

        receipt_date = self._extract_date(lines)
        address = match_address(lines, merchant_index=merchant_index, window=HEADER_WINDOW)
        amount = self._extract_total(lines, code)
        tax = self._first_forward(lines, code, match_tax)
        subtotal = self._first_forward(lines, code, match_subtotal)
        items = self._extract_items(lines, code, total=amount, subtotal=subtotal)

        if amount is None and items:
            summed = round(sum(item.price for item in items), 2)
            if is_valid_amount(summed):
                amount = summed

        logger.debug(
            "Parsed receipt merchant=%r date=%s amount=%s items=%s",
            merchant,
            receipt_date,
            amount,
            len(items),
        )
        return ReceiptData(
            merchant=merchant,
            address=address,
            date=receipt_date,
            amount=amount,
            subtotal=subtotal,
            tax=tax,
            items=[item.format(code) for item in items],
        )

    def _extract_date(self, lines: Sequence[str]) -> str:
        for line in lines:
            for matcher in DATE_MATCHERS:
                value = matcher(line)
                if value is not None:
                    return value
        return self._clock().isoformat()

    @staticmethod
    def _extract_total(lines: Sequence[str], currency: str) -> Optional[float]:
        candidates = [
            line
            for line in reversed(lines[-TRAILER_WINDOW:])
            if not contains_keyword(line, PAYMENT_KEYWORDS)
        ]
        # Label-anchored matches on any line beat a trailing number anywhere.
        for matchers in (TOTAL_LABEL_MATCHERS, TOTAL_POSITIONAL_MATCHERS):
            for line in candidates:
                for matcher in matchers:
                    value = matcher(line, currency)
                    if value is not None:
                        return value
        return None

    @staticmethod
    def _first_forward(
        lines: Sequence[str],
        currency: str,
        matcher: Callable[[str, str], Optional[float]],
    ) -> Optional[float]:
        for line in lines:
            value = matcher(line, currency)
            if value is not None:
                return value
        return None

    @staticmethod
    def _item_window(lines: Sequence[str]) -> tuple[int, int]:
        start = 0
        for index, line in enumerate(lines[:HEADER_WINDOW]):
            if contains_keyword(line, ITEM_HEADER_KEYWORDS) or line[:1].isdigit():
                start = index
                break

        end = len(lines)
        first_trailer = max(0, len(lines) - TRAILER_WINDOW)
        for index in range(len(lines) - 1, first_trailer - 1, -1):
            if contains_keyword(lines[index], ITEM_SKIP_KEYWORDS):
                end = index
                break
        return start, end

    def _extract_items(
        self,
        lines: Sequence[str],
        currency: str,
        *,
        total: Optional[float],
        subtotal: Optional[float],
    ) -> List[ParsedItem]:
        def acceptable(item: Optional[ParsedItem]) -> bool:
            return (
                item is not None
                and is_valid_amount(item.price)
                and not same_amount(item.price, total)
                and not same_amount(item.price, subtotal)
            )

        start, end = self._item_window(lines)
        items: List[ParsedItem] = []
        for line in lines[start:end]:
            if contains_keyword(line, ITEM_SKIP_KEYWORDS):
                continue

            if count_multi_item_groups(line) >= 2:
                items.extend(
                    item for item in match_multi_items(line, currency) if acceptable(item)
                )
                continue

            accepted = self._first_item(line, currency, SINGLE_ITEM_MATCHERS, acceptable)
            if accepted is None and _has_letters_and_digits(line):
                accepted = self._first_item(line, currency, FALLBACK_ITEM_MATCHERS, acceptable)
            if accepted is not None:
                items.append(accepted)
        return items

    @staticmethod
    def _first_item(
        line: str,
        currency: str,
        matchers: Sequence[Callable[[str, str], Optional[ParsedItem]]],
        acceptable: Callable[[Optional[ParsedItem]], bool],
    ) -> Optional[ParsedItem]:
        for matcher in matchers:
            item = matcher(line, currency)
            if acceptable(item):
                return item
        return None


def _has_letters_and_digits(line: str) -> bool:
    return any(ch.isalpha() for ch in line) and any(ch.isdigit() for ch in line)


def parse_receipt_text(
    text: str,
    currency: str = "USD",
    *,
    clock: Callable[[], date] = date.today,
) -> ReceiptData:
    """Convenience wrapper around :class:`ReceiptTextParser`."""

    return ReceiptTextParser(clock=clock).parse(text, currency)


__all__ = ["ReceiptTextParser", "normalize_currency", "normalize_lines", "parse_receipt_text"]
