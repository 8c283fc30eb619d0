"""Tests for the heuristic receipt text parser."""

from __future__ import annotations

import itertools
import json
from pathlib import Path
from typing import Any

import pytest

from slipscan.ocr.parser import ReceiptTextParser, normalize_currency, parse_receipt_text

FIXTURES_DIR = Path(__file__).resolve().parents[1] / "fixtures" / "receipts"


@pytest.fixture()
def parser(fixed_clock) -> ReceiptTextParser:
    return ReceiptTextParser(clock=fixed_clock)


def test_parser_extracts_canonical_sample(parser, sample_text):
    result = parser.parse(sample_text)

    assert result.merchant == "SHOPRITE SUPERMARKET"
    assert result.address == "123 Main Street, Harare"
    assert result.date == "2024-01-15"
    assert result.amount == 20.76
    assert result.subtotal == 18.05
    assert result.tax == 2.71
    assert result.items == [
        "BREAD WHITE LOAF - USD 2.50",
        "MILK 2L - USD 3.75",
        "EGGS DOZEN - USD 4.20",
        "SUGAR 1KG - USD 2.10",
        "RICE 2KG - USD 5.50",
    ]
    # Categorisation happens in the pipeline, not the parser.
    assert result.category is None


@pytest.mark.parametrize("name", ["sample_receipt", "diner_receipt"])
def test_parser_matches_fixture(parser, name: str) -> None:
    raw_text = (FIXTURES_DIR / f"{name}.txt").read_text(encoding="utf-8")
    expected: dict[str, Any] = json.loads(
        (FIXTURES_DIR / f"{name}_expected.json").read_text(encoding="utf-8")
    )

    result = parser.parse(raw_text)

    for field in ("merchant", "address", "date", "amount", "subtotal", "tax", "items"):
        assert getattr(result, field) == expected[field], field


@pytest.mark.parametrize(
    "trailer",
    list(itertools.permutations(["CASH 25.00", "CHANGE 4.24", "TOTAL 20.76"])),
)
def test_total_ignores_cash_and_change_in_any_order(parser, trailer):
    text = "\n".join(["CORNER SHOP", "BREAD 2.50", "MILK 3.75", *trailer])

    assert parser.parse(text).amount == 20.76


def test_total_falls_back_to_item_sum(parser):
    text = "\n".join(
        [
            "CORNER SHOP",
            "BREAD 2.50 USD",
            "MILK 3.75 USD",
            "EGGS 4.20 USD",
            "SUGAR 2.10 USD",
            "RICE 5.50 USD",
        ]
    )

    result = parser.parse(text)

    assert len(result.items) == 5
    assert result.amount == 18.05


def test_label_anchored_total_beats_trailing_number(parser):
    text = "\n".join(
        ["CAFE LUNA", "COFFEE 3.50", "MUFFIN 2.25", "TOTAL 5.75", "LOYALTY POINTS 12.00"]
    )

    result = parser.parse(text)

    assert result.amount == 5.75
    assert result.items == ["COFFEE - USD 3.50", "MUFFIN - USD 2.25"]


def test_total_with_thousands_separator(parser):
    result = parser.parse("HARDWARE STORE\nTOTAL: $1,234.50")

    assert result.amount == 1234.5


def test_item_equal_to_total_is_dropped(parser):
    result = parser.parse("KIOSK\nWATER 1.20\nTOTAL 1.20")

    assert result.amount == 1.20
    assert result.items == []


def test_priced_lines_above_item_header_are_not_items(parser):
    text = "\n".join(
        ["CORNER SHOP", "LOYALTY BONUS 5.00", "ITEM PRICE", "BREAD 2.50", "MILK 3.75", "TOTAL 6.25"]
    )

    result = parser.parse(text)

    assert result.items == ["BREAD - USD 2.50", "MILK - USD 3.75"]


def test_priced_lines_after_last_trailer_keyword_are_not_items(parser):
    text = "\n".join(
        [
            "CORNER SHOP",
            "BREAD 2.50",
            "MILK 3.75",
            "TOTAL 6.25",
            "BAG LEVY 0.50",
            "THANK YOU",
            "KEYRING 1.00",
        ]
    )

    result = parser.parse(text)

    assert result.amount == 6.25
    assert result.items == ["BREAD - USD 2.50", "MILK - USD 3.75", "BAG LEVY - USD 0.50"]


def test_unlabelled_receipt_takes_last_price_as_total(parser):
    # Without a TOTAL line the bottom-most price is the total and drops out of the items.
    text = "\n".join(
        ["CORNER SHOP", "BREAD 2.50", "MILK 3.75", "EGGS 4.20", "SUGAR 2.10", "RICE 5.50"]
    )

    result = parser.parse(text)

    assert result.amount == 5.50
    assert result.items == [
        "BREAD - USD 2.50",
        "MILK - USD 3.75",
        "EGGS - USD 4.20",
        "SUGAR - USD 2.10",
    ]


def test_day_first_date_when_day_exceeds_twelve(parser):
    result = parser.parse("CORNER SHOP\n15/01/2024 10:22\nTOTAL 5.00")

    assert result.date == "2024-01-15"


def test_ambiguous_slash_date_reads_month_first(parser):
    result = parser.parse("CORNER SHOP\n03/04/2024\nTOTAL 5.00")

    assert result.date == "2024-03-04"


def test_iso_date_passes_through(parser):
    result = parser.parse("CORNER SHOP\nDate: 2024-01-15\nTOTAL 5.00")

    assert result.date == "2024-01-15"


def test_missing_date_uses_clock(parser, fixed_clock):
    result = parser.parse("CORNER SHOP\nBREAD 2.50\nTOTAL 2.75")

    assert result.date == fixed_clock().isoformat()


def test_impossible_calendar_date_is_ignored(parser, fixed_clock):
    result = parser.parse("CORNER SHOP\n31/02/2024\nTOTAL 5.00")

    assert result.date == fixed_clock().isoformat()


def test_multi_item_line_yields_each_item(parser):
    text = "CORNER SHOP\nBREAD - USD 2.50 MILK - USD 3.75\nTOTAL 6.25"

    result = parser.parse(text)

    assert result.items == ["BREAD - USD 2.50", "MILK - USD 3.75"]


def test_items_never_contain_skip_keywords(parser, sample_text):
    result = parser.parse(sample_text)

    for item in result.items:
        upper = item.upper()
        for keyword in ("TOTAL", "CASH", "CHANGE", "TAX"):
            assert keyword not in upper


def test_merchant_falls_back_to_first_line(parser):
    result = parser.parse("Mwale & Sons\nNAILS 1KG 4.00\nTOTAL 4.50")

    assert result.merchant == "Mwale & Sons"


def test_currency_code_is_used_for_items(parser):
    result = parser.parse("CORNER SHOP\nBREAD 2.50\nTOTAL 2.75", currency="eur")

    assert result.items == ["BREAD - EUR 2.50"]


def test_empty_text_yields_sparse_record(parser, fixed_clock):
    result = parser.parse("")

    assert result.merchant is None
    assert result.address is None
    assert result.amount is None
    assert result.items == []
    assert result.date == fixed_clock().isoformat()


def test_parsing_is_idempotent(parser, sample_text):
    assert parser.parse(sample_text) == parser.parse(sample_text)


def test_parse_receipt_text_wrapper(fixed_clock, sample_text):
    result = parse_receipt_text(sample_text, "USD", clock=fixed_clock)

    assert result.amount == 20.76


def test_non_string_text_is_rejected(parser):
    with pytest.raises(TypeError):
        parser.parse(None)  # type: ignore[arg-type]


@pytest.mark.parametrize("currency", ["US", "DOLLARS", "U$D", ""])
def test_invalid_currency_code_is_rejected(currency):
    with pytest.raises(ValueError):
        normalize_currency(currency)


def test_non_string_currency_is_rejected():
    with pytest.raises(TypeError):
        normalize_currency(840)  # type: ignore[arg-type]
