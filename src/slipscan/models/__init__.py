"""Pydantic models defining shared data contracts."""

from slipscan.models.receipt import MAX_AMOUNT, Category, ReceiptData, ScanRequest

__all__ = [
    "MAX_AMOUNT",
    "Category",
    "ReceiptData",
    "ScanRequest",
]
