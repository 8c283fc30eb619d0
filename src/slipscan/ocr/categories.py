"""Keyword-based spending category inference."""

from __future__ import annotations

from typing import Optional, Sequence

CATEGORY_RULES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Groceries", ("SHOP", "MARKET", "STORE")),
    ("Food & Dining", ("RESTAURANT", "CAFE", "FOOD")),
    ("Fuel", ("GAS", "PETROL", "FUEL", "STATION")),
    ("Healthcare", ("PHARMACY", "MEDICAL", "CLINIC")),
    ("Supplies", ("HARDWARE", "BUILDING")),
)


class CategoryClassifier:
    """Map a merchant name to a spending category; the first matching rule wins."""

    def __init__(
        self,
        rules: Sequence[tuple[str, Sequence[str]]] = CATEGORY_RULES,
    ) -> None:
        self._rules = tuple((label, tuple(k.upper() for k in keywords)) for label, keywords in rules)

    def classify(self, merchant: Optional[str]) -> Optional[str]:
        if not merchant:
            return None
        upper = merchant.upper()
        for label, keywords in self._rules:
            if any(keyword in upper for keyword in keywords):
                return label
        return None


def classify_merchant(merchant: Optional[str]) -> Optional[str]:
    return CategoryClassifier().classify(merchant)


__all__ = ["CATEGORY_RULES", "CategoryClassifier", "classify_merchant"]
