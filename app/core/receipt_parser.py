# app/core/receipt_parser.py

"""
Receipt text extraction.

Turns raw OCR text into candidate (description, unit price) line items.
OCR output is noisy: prices carry tax-code suffixes ("4.98 F"), totals
and payment lines look like items, and headers carry dates and phone
numbers. Anything that does not look like a priced product line is
dropped rather than guessed at.
"""

from decimal import Decimal, InvalidOperation
import logging
import re

from app.models import OCRLineItem, ReceiptExtraction
from app.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

MIN_LINE_LENGTH = 3
NOISE_DESCRIPTION_LENGTH = 5

# "COKE 2 @ 1.99", "WATER 3 X 4.50 F"
MULTI_QUANTITY_RE = re.compile(
    r'(?:^|\s)(\d{1,3})(?:\s*[@xX]\s*|\s+)\$?\s?(\d{1,3}\.\d{2})(?:\s+[A-Z])?\s*$'
)

# "BLK RIFLE COFFEE    4.98 F", "CHIPS $3.49"
TRAILING_PRICE_RE = re.compile(r'\$?\s?(\d{1,3}\.\d{2})(?:\s*[A-Z])?\s*$')

SUMMARY_RE = re.compile(
    r'\b(sub\s*-?\s*total|total|tax|balance|change|cash|payment|tender|'
    r'visa|mastercard|master\s*card|amex|american\s*express|discover|debit|credit)\b',
    re.IGNORECASE,
)
TOTAL_RE = re.compile(r'\btotal\b', re.IGNORECASE)
SUBTOTAL_RE = re.compile(r'\bsub\s*-?\s*total\b|\bsubtotal\b', re.IGNORECASE)

HEADER_PATTERNS = [
    re.compile(r'\b\d{1,2}[/-]\d{1,2}[/-]\d{2,4}\b'),               # dates
    re.compile(r'\(?\b\d{3}\)?[\s.-]\d{3}[\s.-]\d{4}\b'),            # phone numbers
    re.compile(r'\b(manager|mgr)\b', re.IGNORECASE),
    re.compile(r'\b(cashier|operator)\b', re.IGNORECASE),
    re.compile(r'\b(store|st|str)\s*#\s*\d+|\bstore\s+\d+\b', re.IGNORECASE),
]


def extract_line_items(text: str | None) -> ReceiptExtraction:
    """
    Extract candidate line items and the grand total from OCR text.

    Lines are tried against the multi-quantity pattern first, then the
    trailing-price pattern. Lines matching neither are ignored.
    """
    extraction = ReceiptExtraction()
    if not text:
        return extraction

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if len(line) < MIN_LINE_LENGTH:
            continue

        parsed = _match_price(line)
        if parsed is None:
            continue

        description, price = parsed

        # ============================================
        # Summary lines (totals, tax, tenders)
        # ============================================
        if SUMMARY_RE.search(description):
            if TOTAL_RE.search(description) and not SUBTOTAL_RE.search(description):
                extraction.detected_total = price
            logger.debug(f"Skipping summary line: {line!r}")
            continue

        if _is_noise(description, price):
            logger.debug(f"Skipping noise line: {line!r}")
            continue

        extraction.lines.append(OCRLineItem(
            index=len(extraction.lines),
            description=description,
            price=price,
        ))

    logger.info(
        f"Extracted {len(extraction.lines)} receipt lines "
        f"(detected total: {extraction.detected_total})"
    )
    return extraction


def _match_price(line: str) -> tuple[str, Decimal] | None:
    """Split a line into (description, unit price) or return None."""
    for pattern in (MULTI_QUANTITY_RE, TRAILING_PRICE_RE):
        match = pattern.search(line)
        if not match:
            continue
        price_text = match.group(match.lastindex)
        try:
            price = Decimal(price_text)
        except InvalidOperation:
            continue
        description = re.sub(r'\s+', ' ', line[:match.start()]).strip()
        return description, price
    return None


def _is_noise(description: str, price: Decimal) -> bool:
    # Tax and bag fees: tiny price with a stub description
    if price < settings.min_line_price and len(description) < NOISE_DESCRIPTION_LENGTH:
        return True

    if not description:
        return True

    if any(p.search(description) for p in HEADER_PATTERNS):
        return True

    if price <= 0 or price >= settings.max_line_price:
        return True

    return False
