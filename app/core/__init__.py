# app/core/__init__.py

from app.core.brands import normalize_brand, find_similar_brand_groups
from app.core.confidence import calculate_confidence, get_confidence_level
from app.core.receipt_parser import extract_line_items
from app.core.variance import check_variance
from app.core.normalizers import (
    normalize_amount,
    normalize_string,
    normalize_receipt_text,
)

__all__ = [
    "normalize_brand",
    "find_similar_brand_groups",
    "calculate_confidence",
    "get_confidence_level",
    "extract_line_items",
    "check_variance",
    "normalize_amount",
    "normalize_string",
    "normalize_receipt_text",
]
