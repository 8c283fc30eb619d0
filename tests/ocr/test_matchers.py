"""Unit tests for the individual receipt line matchers."""

from __future__ import annotations

import math

import pytest

from slipscan.ocr import matchers
from slipscan.ocr.matchers import (
    PAYMENT_KEYWORDS,
    ParsedItem,
    clean_item_name,
    contains_keyword,
    count_multi_item_groups,
    is_valid_amount,
    looks_like_address,
    match_address,
    match_merchant,
    match_multi_items,
    match_subtotal,
    match_tax,
    normalize_slash_date,
    parse_amount,
)


@pytest.mark.parametrize(
    ("parts", "expected"),
    [
        (("15", "01", "2024"), "2024-01-15"),
        (("03", "04", "2024"), "2024-03-04"),
        (("2024", "01", "15"), "2024-01-15"),
        (("31", "02", "2024"), None),
    ],
)
def test_normalize_slash_date(parts, expected):
    assert normalize_slash_date(*parts) == expected


@pytest.mark.parametrize(
    ("matcher", "line", "expected"),
    [
        (matchers.match_iso_dash_date, "Date: 2024-01-15", "2024-01-15"),
        (matchers.match_iso_slash_date, "2024/1/5 09:00", "2024-01-05"),
        (matchers.match_day_first_dash_date, "15-01-2024", "2024-01-15"),
        (matchers.match_padded_slash_date, "15/01/2024", "2024-01-15"),
        (matchers.match_loose_slash_date, "5/1/2024", "2024-05-01"),
        (matchers.match_labelled_date, "DATE : 15-01-2024", "2024-01-15"),
        (matchers.match_iso_dash_date, "REF 12024-01-15", None),
    ],
)
def test_date_matchers(matcher, line, expected):
    assert matcher(line) == expected


def test_date_matchers_are_ordered_iso_first():
    assert matchers.DATE_MATCHERS[0] is matchers.match_iso_dash_date


@pytest.mark.parametrize(
    ("line", "expected"),
    [
        ("TOTAL 20.76", 20.76),
        ("TOTAL: $20.76", 20.76),
        ("Total USD 20.76", 20.76),
        ("SUBTOTAL 18.05", None),
        ("SUB TOTAL 18.05", None),
        ("SUB-TOTAL 18.05", None),
        ("TOTAL QTY 3", None),
        ("TOTAL 150000.00", None),
    ],
)
def test_total_label_matcher(line, expected):
    assert matchers.match_total_label(line, "USD") == expected


def test_amount_and_grand_total_labels():
    assert matchers.match_amount_label("AMOUNT: 12.40", "USD") == 12.40
    assert matchers.match_grand_total_label("GRAND TOTAL £ 99.10", "GBP") == 99.10
    assert matchers.match_total_due_label("TOTAL DUE 7.00", "USD") == 7.00


def test_trailing_amount_is_positional():
    assert matchers.match_trailing_amount("CHANGE 4.24", "USD") == 4.24
    assert matchers.match_trailing_amount("BREAD 2.50 USD", "USD") is None


@pytest.mark.parametrize(
    ("line", "expected"),
    [
        ("TAX (15%) 2.71", 2.71),
        ("VAT 15% 2.82", 2.82),
        ("GST: $1.10", 1.10),
        ("TAX 15%", None),
        ("TAXI FARE 12.00", None),
    ],
)
def test_tax_matcher(line, expected):
    assert match_tax(line, "USD") == expected


def test_subtotal_matcher():
    assert match_subtotal("SUB-TOTAL: 18.05", "USD") == 18.05
    assert match_subtotal("SUBTOTAL USD 18.05", "USD") == 18.05
    assert match_subtotal("TOTAL 20.76", "USD") is None


@pytest.mark.parametrize(
    ("line", "expected"),
    [
        ("BREAD WHITE LOAF        2.50", ParsedItem("BREAD WHITE LOAF", 2.50)),
        ("APPLES 3 @ 0.50", ParsedItem("APPLES", 1.50)),
        ("Flat White x2 @ 3.25", ParsedItem("Flat White", 6.50)),
        ("SOAP 2 1.99", ParsedItem("SOAP 2", 1.99)),
        ("SOAP 2 1.99 T", ParsedItem("SOAP", 1.99)),
        ("CHEESE 4.00 3.50", ParsedItem("CHEESE", 3.50)),
        ("BREAD - USD 2.50", ParsedItem("BREAD", 2.50)),
        ("Avocado Toast $9.50", ParsedItem("Avocado Toast", 9.50)),
        ("RICE 2KG 5.50 USD", ParsedItem("RICE 2KG", 5.50)),
    ],
)
def test_single_item_matchers(line, expected):
    found = None
    for matcher in matchers.SINGLE_ITEM_MATCHERS:
        found = matcher(line, "USD")
        if found is not None:
            break
    assert found == expected


def test_fallback_item_matchers_handle_dot_leaders_and_flags():
    glued = [m("COFFEE........3.50", "USD") for m in matchers.FALLBACK_ITEM_MATCHERS]
    flagged = [m("MILK 1L 1.99 A", "USD") for m in matchers.FALLBACK_ITEM_MATCHERS]

    assert ParsedItem("COFFEE", 3.50) in glued
    assert flagged[0] == ParsedItem("MILK 1L", 1.99)


def test_item_requires_letters_in_name():
    assert matchers.match_plain_trailing_item("12345 2.50", "USD") is None


def test_multi_item_matcher():
    line = "BREAD - USD 2.50 MILK - USD 3.75"

    assert count_multi_item_groups(line) == 2
    assert match_multi_items(line, "USD") == [
        ParsedItem("BREAD", 2.50),
        ParsedItem("MILK", 3.75),
    ]
    assert count_multi_item_groups("BREAD - USD 2.50") == 1


def test_parsed_item_format():
    assert ParsedItem("BREAD", 2.5).format("USD") == "BREAD - USD 2.50"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("MILK 2L  $", "MILK 2L"),
        ("Blueberry Muffin ....", "Blueberry Muffin"),
        ("SUGAR   1KG USD", "SUGAR 1KG"),
        ("APPLES 3 @", "APPLES 3"),
    ],
)
def test_clean_item_name(raw, expected):
    assert clean_item_name(raw, "USD") == expected


def test_address_detection():
    assert looks_like_address("123 Main Street, Harare")
    assert looks_like_address("Shop 4, Eastgate Mall")
    assert not looks_like_address("Tel: +263 4 123 4567")
    assert not looks_like_address("Date: 2024-01-15")
    assert not looks_like_address("Main Street")


def test_match_address_skips_merchant_line():
    lines = ["12 BAKER STREET STORE", "12 Baker Street, Leeds"]

    assert match_address(lines, merchant_index=0) == "12 Baker Street, Leeds"


def test_match_merchant_uses_header_window():
    assert match_merchant(["RECEIPT #44", "JOE'S CAFE"]) == 1
    assert match_merchant(["A", "B", "C", "D", "E", "FOOD MARKET"]) is None


def test_payment_keywords_match_substrings():
    assert contains_keyword("Cashier: John", PAYMENT_KEYWORDS)
    assert not contains_keyword("BREAD 2.50", PAYMENT_KEYWORDS)


def test_amount_helpers():
    assert parse_amount("1,234.50") == 1234.5
    assert parse_amount("") is None
    assert is_valid_amount(99999.99)
    assert not is_valid_amount(0)
    assert not is_valid_amount(100000)
    assert not is_valid_amount(math.inf)
    assert not is_valid_amount(None)
