# app/models/receipt.py

from datetime import datetime
from decimal import Decimal
from typing import Optional, Literal
from pydantic import BaseModel, Field


# ============================================
# OCR Extraction
# ============================================

class OCRLineItem(BaseModel):
    """One candidate line extracted from receipt text."""

    index: int
    description: str
    price: Decimal
    matched: bool = False
    matched_product_id: Optional[str] = None

    def mark_matched(self, product_id: Optional[str]) -> None:
        self.matched = True
        self.matched_product_id = product_id

    def clear_match(self) -> None:
        self.matched = False
        self.matched_product_id = None


class ReceiptExtraction(BaseModel):
    """Everything the text extractor pulled out of one OCR pass."""

    lines: list[OCRLineItem] = Field(default_factory=list)
    detected_total: Optional[Decimal] = None


# ============================================
# Aliases
# ============================================

class Alias(BaseModel):
    """A persisted, human-confirmed mapping from receipt text to a product."""

    id: Optional[str] = None
    store_name: Optional[str] = None
    receipt_text: str
    product_id: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AliasCreate(BaseModel):
    store_name: Optional[str] = None
    receipt_text: str
    product_id: str


# ============================================
# Assisted Matching
# ============================================

AssistedConfidence = Literal["high", "medium", "low", "none"]

class AssistedMatch(BaseModel):
    """One pairing proposed by the assisted matcher."""

    receipt_index: int
    product_id: Optional[str] = None
    confidence: AssistedConfidence = "none"
    reasoning: str = ""
