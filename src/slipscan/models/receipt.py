"""Pydantic models for structured receipt data."""

from __future__ import annotations

from datetime import date as date_type
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

MAX_AMOUNT = 100000.0

Category = Literal["Groceries", "Food & Dining", "Fuel", "Healthcare", "Supplies"]


class ReceiptData(BaseModel):
    """Structured, normalized view of a scanned receipt."""

    merchant: Optional[str] = None
    address: Optional[str] = None
    date: str
    amount: Optional[float] = Field(default=None, gt=0, lt=MAX_AMOUNT, allow_inf_nan=False)
    subtotal: Optional[float] = Field(default=None, gt=0, lt=MAX_AMOUNT, allow_inf_nan=False)
    tax: Optional[float] = Field(default=None, gt=0, lt=MAX_AMOUNT, allow_inf_nan=False)
    items: list[str] = Field(default_factory=list)
    category: Optional[Category] = None

    model_config = ConfigDict(frozen=True)

    @field_validator("date")
    @classmethod
    def _validate_iso_date(cls, value: str) -> str:
        parsed = date_type.fromisoformat(value)
        return parsed.isoformat()


class ScanRequest(BaseModel):
    """Payload for parsing OCR text that was captured elsewhere."""

    text: str
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)


__all__ = ["Category", "MAX_AMOUNT", "ReceiptData", "ScanRequest"]
