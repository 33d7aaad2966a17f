# app/core/normalizers.py

"""
Text and amount normalization shared by the matching phases.

Receipt text, catalog names and typed-in prices arrive in many shapes;
everything compared or stored goes through here first.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any
import re

CENT = Decimal("0.01")


def normalize_amount(amount: Any) -> Decimal | None:
    """
    Normalize a price to a two-place Decimal.

    Handles:
    - Decimals, integers and floats
    - Strings with currency symbols or thousands separators
    - Blank strings and None (returns None)
    """
    if amount is None:
        return None

    if isinstance(amount, Decimal):
        return amount.quantize(CENT, rounding=ROUND_HALF_UP)

    if isinstance(amount, (int, float)):
        return Decimal(str(amount)).quantize(CENT, rounding=ROUND_HALF_UP)

    if isinstance(amount, str):
        cleaned = re.sub(r'[^\d.-]', '', amount)
        if not cleaned:
            return None
        try:
            return Decimal(cleaned).quantize(CENT, rounding=ROUND_HALF_UP)
        except InvalidOperation:
            return None

    return None


def normalize_string(s: str | None) -> str:
    """
    Normalize string for comparison.

    - Lowercase
    - Remove special characters
    - Collapse whitespace
    """
    if not s:
        return ""

    s = s.lower()
    s = re.sub(r'[^a-z0-9\s]', '', s)
    s = re.sub(r'\s+', ' ', s).strip()
    return s


def normalize_receipt_text(text: str | None) -> str:
    """Receipt text as persisted on an alias: upper-cased, trimmed, single-spaced."""
    if not text:
        return ""
    return re.sub(r'\s+', ' ', text).strip().upper()


def fold_text(text: str | None) -> str:
    """Case-folded, trimmed, single-spaced text for containment checks."""
    if not text:
        return ""
    return re.sub(r'\s+', ' ', text).strip().casefold()


def tokenize(text: str | None, min_length: int = 1) -> list[str]:
    """Split normalized text into tokens longer than ``min_length - 1``."""
    return [t for t in normalize_string(text).split() if len(t) >= min_length]
