"""Pure pattern matchers used by the receipt text parser.

Every matcher takes a single receipt line (plus the currency code where the
pattern needs it) and returns an optional result. The ordered tuples at the
bottom of each section define precedence: callers evaluate them in order and
stop at the first hit.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional, Sequence

from slipscan.models.receipt import MAX_AMOUNT

MERCHANT_KEYWORDS = (
    "SHOP",
    "STORE",
    "MARKET",
    "SUPERMARKET",
    "RESTAURANT",
    "CAFE",
    "GARAGE",
    "STATION",
)

PAYMENT_KEYWORDS = (
    "CHANGE",
    "CASH",
    "CARD",
    "DEBIT",
    "CREDIT",
    "BALANCE",
    "REFUND",
    "RETURN",
)

ITEM_SKIP_KEYWORDS = (
    "TOTAL",
    "TAX",
    "SUBTOTAL",
    "CASH",
    "CHANGE",
    "THANK",
    "DATE",
    "TIME",
    "CASHIER",
    "RECEIPT",
    "INVOICE",
    "AMOUNT",
    "DUE",
    "PAID",
    "BALANCE",
    "DISCOUNT",
    "SALE",
    "SPECIAL",
    "PROMO",
    "CARD",
    "DEBIT",
    "CREDIT",
    "REFUND",
    "RETURN",
    "EXCHANGE",
    "VAT",
    "GST",
    "SERVICE",
    "CHARGE",
)

ITEM_HEADER_KEYWORDS = ("ITEM", "PRODUCT", "DESCRIPTION")

_CURRENCY_SYMBOLS = "$€£¥₹"
_PRICE = r"\d[\d,]*\.\d{2}"
_LABEL_AMOUNT = r"(\d[\d,]*(?:\.\d+)?)(?![\d%])"


def parse_amount(raw: str) -> Optional[float]:
    """Convert a numeric literal to float, stripping thousands separators."""

    cleaned = raw.replace(",", "").strip()
    if not cleaned:
        return None
    try:
        value = float(cleaned)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return value


def is_valid_amount(value: Optional[float]) -> bool:
    return value is not None and math.isfinite(value) and 0 < value < MAX_AMOUNT


def same_amount(value: float, other: Optional[float]) -> bool:
    return other is not None and abs(value - other) < 0.005


def contains_keyword(line: str, keywords: Sequence[str]) -> bool:
    upper = line.upper()
    return any(keyword in upper for keyword in keywords)


def _currency_prefix(currency: str) -> str:
    return rf"(?:(?:[{_CURRENCY_SYMBOLS}]|{re.escape(currency)})\s*)?"


# ---------------------------------------------------------------------------
# Merchant
# ---------------------------------------------------------------------------


def match_merchant(lines: Sequence[str], *, window: int = 5) -> Optional[int]:
    """Return the index of the first header line carrying a store-type keyword."""

    for index, line in enumerate(lines[:window]):
        if contains_keyword(line, MERCHANT_KEYWORDS):
            return index
    return None


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------

_ISO_DASH = re.compile(r"(?<!\d)(\d{4})-(\d{1,2})-(\d{1,2})(?!\d)")
_ISO_SLASH = re.compile(r"(?<!\d)(\d{4})/(\d{1,2})/(\d{1,2})(?!\d)")
_DAY_FIRST_DASH = re.compile(r"(?<!\d)(\d{1,2})-(\d{1,2})-(\d{4})(?!\d)")
_PADDED_SLASH = re.compile(r"(?<!\d)(\d{2})/(\d{2})/(\d{4})(?!\d)")
_LOOSE_SLASH = re.compile(r"(?<!\d)(\d{1,2})/(\d{1,2})/(\d{4})(?!\d)")
_LABELLED_YEAR_FIRST = re.compile(r"DATE\s*:\s*(\d{4})[-/](\d{1,2})[-/](\d{1,2})", re.IGNORECASE)
_LABELLED_YEAR_LAST = re.compile(r"DATE\s*:\s*(\d{1,2})([-/])(\d{1,2})\2(\d{4})", re.IGNORECASE)


def _iso(year: int, month: int, day: int) -> Optional[str]:
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def normalize_slash_date(first: str, second: str, third: str) -> Optional[str]:
    """Normalise a slash-separated date to YYYY-MM-DD.

    A 4-digit first token is year-led. Otherwise a first token above 12 can
    only be a day (DD/MM/YYYY); anything else is read as MM/DD/YYYY.
    """

    if len(first) == 4:
        return _iso(int(first), int(second), int(third))
    if int(first) > 12:
        return _iso(int(third), int(second), int(first))
    return _iso(int(third), int(first), int(second))


def match_iso_dash_date(line: str) -> Optional[str]:
    match = _ISO_DASH.search(line)
    if not match:
        return None
    year, month, day = match.groups()
    return _iso(int(year), int(month), int(day))


def match_iso_slash_date(line: str) -> Optional[str]:
    match = _ISO_SLASH.search(line)
    if not match:
        return None
    return normalize_slash_date(*match.groups())


def match_day_first_dash_date(line: str) -> Optional[str]:
    match = _DAY_FIRST_DASH.search(line)
    if not match:
        return None
    day, month, year = match.groups()
    return _iso(int(year), int(month), int(day))


def match_padded_slash_date(line: str) -> Optional[str]:
    match = _PADDED_SLASH.search(line)
    if not match:
        return None
    return normalize_slash_date(*match.groups())


def match_loose_slash_date(line: str) -> Optional[str]:
    match = _LOOSE_SLASH.search(line)
    if not match:
        return None
    return normalize_slash_date(*match.groups())


def match_labelled_date(line: str) -> Optional[str]:
    match = _LABELLED_YEAR_FIRST.search(line)
    if match:
        year, month, day = match.groups()
        return _iso(int(year), int(month), int(day))
    match = _LABELLED_YEAR_LAST.search(line)
    if match:
        first, separator, second, year = match.groups()
        if separator == "/":
            return normalize_slash_date(first, second, year)
        return _iso(int(year), int(second), int(first))
    return None


DATE_MATCHERS: tuple[Callable[[str], Optional[str]], ...] = (
    match_iso_dash_date,
    match_iso_slash_date,
    match_day_first_dash_date,
    match_padded_slash_date,
    match_loose_slash_date,
    match_labelled_date,
)


# ---------------------------------------------------------------------------
# Address
# ---------------------------------------------------------------------------

_ADDRESS_EXCLUDE = re.compile(r"\b(?:DATE|TIME|TEL|PHONE)", re.IGNORECASE)
_ADDRESS_KEYWORDS = re.compile(
    r"\b(?:STREET|ST|ROAD|RD|AVENUE|AVE|BOULEVARD|BLVD|DRIVE|DR|LANE|LN|WAY|PLACE|PL"
    r"|COURT|CT|CRESCENT|CRES|HIGHWAY|HWY|PARKWAY|PKWY|SQUARE|SQ|SUITE|STE|UNIT|BUILDING"
    r"|MALL|CENTRE|CENTER|P\.?O\.?\s*BOX|BOX|TEL|PHONE|ADDRESS)\b",
    re.IGNORECASE,
)


def looks_like_address(line: str) -> bool:
    if len(line) <= 10:
        return False
    if _ADDRESS_EXCLUDE.search(line):
        return False
    has_digit = any(ch.isdigit() for ch in line)
    has_alpha = any(ch.isalpha() for ch in line)
    return has_digit and has_alpha and bool(_ADDRESS_KEYWORDS.search(line))


def match_address(
    lines: Sequence[str],
    *,
    merchant_index: Optional[int],
    window: int = 10,
) -> Optional[str]:
    for index, line in enumerate(lines[:window]):
        if index == merchant_index:
            continue
        if looks_like_address(line):
            return line
    return None


# ---------------------------------------------------------------------------
# Totals, tax and subtotal
# ---------------------------------------------------------------------------

AmountMatcher = Callable[[str, str], Optional[float]]


def _label_matcher(label: str) -> AmountMatcher:
    def matcher(line: str, currency: str) -> Optional[float]:
        pattern = re.compile(
            rf"{label}[:\s]*{_currency_prefix(currency)}{_LABEL_AMOUNT}", re.IGNORECASE
        )
        match = pattern.search(line)
        if not match:
            return None
        value = parse_amount(match.group(1))
        return value if is_valid_amount(value) else None

    matcher.__name__ = f"match_{label}"
    return matcher


match_total_label = _label_matcher(r"(?<!SUB)(?<!SUB )(?<!SUB-)\bTOTAL")
match_amount_label = _label_matcher(r"\bAMOUNT")
match_grand_total_label = _label_matcher(r"\bGRAND\s*TOTAL")
match_total_due_label = _label_matcher(r"(?<!SUB)\bTOTAL\s*DUE")

_TRAILING_PRICE = re.compile(rf"({_PRICE})\s*$")


def match_trailing_amount(line: str, currency: str) -> Optional[float]:
    match = _TRAILING_PRICE.search(line)
    if not match:
        return None
    value = parse_amount(match.group(1))
    return value if is_valid_amount(value) else None


TOTAL_LABEL_MATCHERS: tuple[AmountMatcher, ...] = (
    match_total_label,
    match_amount_label,
    match_grand_total_label,
    match_total_due_label,
)

TOTAL_POSITIONAL_MATCHERS: tuple[AmountMatcher, ...] = (match_trailing_amount,)


def match_tax(line: str, currency: str) -> Optional[float]:
    pattern = re.compile(
        rf"\b(?:TAX|VAT|GST)[:\s(]*(?:\d+(?:\.\d+)?\s*%)?[:\s)]*{_currency_prefix(currency)}"
        rf"{_LABEL_AMOUNT}",
        re.IGNORECASE,
    )
    match = pattern.search(line)
    if not match:
        return None
    value = parse_amount(match.group(1))
    return value if is_valid_amount(value) else None


def match_subtotal(line: str, currency: str) -> Optional[float]:
    pattern = re.compile(
        rf"\bSUB[\s-]*TOTAL[:\s]*{_currency_prefix(currency)}{_LABEL_AMOUNT}", re.IGNORECASE
    )
    match = pattern.search(line)
    if not match:
        return None
    value = parse_amount(match.group(1))
    return value if is_valid_amount(value) else None


# ---------------------------------------------------------------------------
# Line items
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ParsedItem:
    name: str
    price: float

    def format(self, currency: str) -> str:
        return f"{self.name} - {currency} {self.price:.2f}"


ItemMatcher = Callable[[str, str], Optional[ParsedItem]]

_TRAILING_SEPARATORS = re.compile(r"[\s.:=*_@\-]+$")
_ENDS_WITH_PRICE = re.compile(rf"{_PRICE}$")


def clean_item_name(name: str, currency: str) -> str:
    """Collapse whitespace and drop dot leaders and dangling currency tokens."""

    cleaned = re.sub(r"\s+", " ", name).strip()
    cleaned = _TRAILING_SEPARATORS.sub("", cleaned)
    cleaned = re.sub(
        rf"(?:^|\s)(?:[{_CURRENCY_SYMBOLS}]|{re.escape(currency)})$", "", cleaned
    ).strip()
    cleaned = _TRAILING_SEPARATORS.sub("", cleaned)
    return cleaned


def _item(name: str, price: Optional[float], currency: str) -> Optional[ParsedItem]:
    if not is_valid_amount(price):
        return None
    cleaned = clean_item_name(name, currency)
    if not cleaned or not any(ch.isalpha() for ch in cleaned):
        return None
    return ParsedItem(name=cleaned, price=round(price, 2))


_PLAIN_TRAILING = re.compile(rf"^(?P<name>.+?)\s+(?P<price>{_PRICE})\s*$")


def match_plain_trailing_item(line: str, currency: str) -> Optional[ParsedItem]:
    match = _PLAIN_TRAILING.match(line)
    if not match:
        return None
    name = match.group("name").rstrip()
    # Leave quantity lines and double-amount lines to the dedicated matchers.
    if _ENDS_WITH_PRICE.search(name) or name.endswith("@"):
        return None
    return _item(name, parse_amount(match.group("price")), currency)


_QTY_AT_PRICE = re.compile(
    rf"^(?P<name>.+?)\s+[xX]?\s*(?P<qty>\d+)\s*[xX]?\s*@\s*[{_CURRENCY_SYMBOLS}]?\s*"
    rf"(?P<price>{_PRICE})(?!\d)"
)


def match_quantity_at_price_item(line: str, currency: str) -> Optional[ParsedItem]:
    match = _QTY_AT_PRICE.match(line)
    if not match:
        return None
    unit_price = parse_amount(match.group("price"))
    if unit_price is None:
        return None
    quantity = int(match.group("qty"))
    if quantity <= 0:
        return None
    return _item(match.group("name"), round(quantity * unit_price, 2), currency)


_QTY_PRICE = re.compile(
    rf"^(?P<name>.*?[A-Za-z].*?)\s+(?P<qty>\d+)\s+(?P<price>{_PRICE})(?!\d)(?!\s+{_PRICE})"
)


def match_quantity_price_item(line: str, currency: str) -> Optional[ParsedItem]:
    match = _QTY_PRICE.match(line)
    if not match:
        return None
    return _item(match.group("name"), parse_amount(match.group("price")), currency)


_TWO_TRAILING = re.compile(rf"^(?P<name>.+?)\s+{_PRICE}\s+(?P<price>{_PRICE})\s*$")


def match_two_amounts_item(line: str, currency: str) -> Optional[ParsedItem]:
    match = _TWO_TRAILING.match(line)
    if not match:
        return None
    return _item(match.group("name"), parse_amount(match.group("price")), currency)


_DASH_CURRENCY = re.compile(
    rf"^(?P<name>.+?)\s*-\s*(?:[A-Z]{{3}}|[{_CURRENCY_SYMBOLS}])\s*(?P<price>{_PRICE})(?!\d)"
)


def match_dash_currency_item(line: str, currency: str) -> Optional[ParsedItem]:
    match = _DASH_CURRENCY.match(line)
    if not match:
        return None
    return _item(match.group("name"), parse_amount(match.group("price")), currency)


_DOLLAR_SUFFIX = re.compile(rf"^(?P<name>.+?)\s*\$\s*(?P<price>{_PRICE})(?!\d)")


def match_dollar_item(line: str, currency: str) -> Optional[ParsedItem]:
    match = _DOLLAR_SUFFIX.match(line)
    if not match:
        return None
    return _item(match.group("name"), parse_amount(match.group("price")), currency)


_AMOUNT_CURRENCY_SUFFIX = re.compile(
    rf"^(?P<name>.+?)\s+(?P<price>{_PRICE})\s*(?:[A-Z]{{3}}|[{_CURRENCY_SYMBOLS}])\s*$"
)


def match_amount_currency_item(line: str, currency: str) -> Optional[ParsedItem]:
    match = _AMOUNT_CURRENCY_SUFFIX.match(line)
    if not match:
        return None
    return _item(match.group("name"), parse_amount(match.group("price")), currency)


SINGLE_ITEM_MATCHERS: tuple[ItemMatcher, ...] = (
    match_plain_trailing_item,
    match_quantity_at_price_item,
    match_quantity_price_item,
    match_two_amounts_item,
    match_dash_currency_item,
    match_dollar_item,
    match_amount_currency_item,
)


_FLAGGED_PRICE = re.compile(
    rf"^(?P<name>.*?[A-Za-z].*?)[\s.:]*(?P<price>{_PRICE})\s+[A-Z*#]{{1,2}}\s*$"
)
_GLUED_PRICE = re.compile(rf"^(?P<name>.*?[A-Za-z].*?)(?P<price>{_PRICE})\s*$")
_FIRST_PRICE = re.compile(rf"^(?P<name>[^\d]*[A-Za-z][^\d]*?)[\s.:=]+(?P<price>{_PRICE})(?!\d)")


def _regex_item_matcher(pattern: re.Pattern[str]) -> ItemMatcher:
    def matcher(line: str, currency: str) -> Optional[ParsedItem]:
        match = pattern.match(line)
        if not match:
            return None
        return _item(match.group("name"), parse_amount(match.group("price")), currency)

    return matcher


FALLBACK_ITEM_MATCHERS: tuple[ItemMatcher, ...] = (
    _regex_item_matcher(_FLAGGED_PRICE),
    _regex_item_matcher(_GLUED_PRICE),
    _regex_item_matcher(_FIRST_PRICE),
)


_MULTI_ITEM = re.compile(
    rf"(?P<name>[A-Za-z][A-Za-z0-9 &'./]*?)\s+-\s+"
    rf"(?:(?:[A-Z]{{3}}|[{_CURRENCY_SYMBOLS}])\s*)?(?P<price>{_PRICE})(?!\d)"
)


def match_multi_items(line: str, currency: str) -> list[ParsedItem]:
    """Return every ``name - CURRENCY amount`` group found on a line.

    Groups whose amount is not a usable price are dropped here; the caller
    decides whether enough groups remain to treat the line as multi-item.
    """

    items: list[ParsedItem] = []
    for match in _MULTI_ITEM.finditer(line):
        item = _item(match.group("name"), parse_amount(match.group("price")), currency)
        if item is not None:
            items.append(item)
    return items


def count_multi_item_groups(line: str) -> int:
    return sum(1 for _ in _MULTI_ITEM.finditer(line))


__all__ = [
    "DATE_MATCHERS",
    "FALLBACK_ITEM_MATCHERS",
    "ITEM_HEADER_KEYWORDS",
    "ITEM_SKIP_KEYWORDS",
    "MAX_AMOUNT",
    "MERCHANT_KEYWORDS",
    "PAYMENT_KEYWORDS",
    "ParsedItem",
    "SINGLE_ITEM_MATCHERS",
    "TOTAL_LABEL_MATCHERS",
    "TOTAL_POSITIONAL_MATCHERS",
    "clean_item_name",
    "contains_keyword",
    "count_multi_item_groups",
    "is_valid_amount",
    "match_address",
    "match_merchant",
    "match_multi_items",
    "match_subtotal",
    "match_tax",
    "normalize_slash_date",
    "parse_amount",
    "same_amount",
]
