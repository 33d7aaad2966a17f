# app/models/reconciliation.py

from datetime import date
from decimal import Decimal
from typing import Optional, Literal
from pydantic import BaseModel, Field

from app.models.inventory import MatchConfidence
from app.models.receipt import OCRLineItem


# ============================================
# Matching Results
# ============================================

MatchPhase = Literal["alias", "fuzzy", "assisted", "manual"]

class LineMatch(BaseModel):
    """A scanned item paired with a receipt line."""

    barcode: str
    product_id: Optional[str] = None
    line_index: int
    receipt_text: str
    unit_cost: Decimal
    confidence: MatchConfidence
    phase: MatchPhase
    score: Optional[float] = None
    reasoning: Optional[str] = None

    @property
    def learnable(self) -> bool:
        """Fuzzy and assisted matches can be remembered as aliases."""
        return self.phase in ("fuzzy", "assisted") and self.product_id is not None


class UnpricedItem(BaseModel):
    """A scanned item no phase could price."""

    barcode: str
    name: str
    brand: Optional[str] = None
    quantity: int
    pairing_options: list[OCRLineItem] = Field(default_factory=list)


# ============================================
# Variance
# ============================================

VarianceStatus = Literal["acceptable", "flagged", "unknown"]

class VarianceResult(BaseModel):
    """Declared receipt total versus the priced scanned items."""

    declared_total: Optional[Decimal] = None
    computed_total: Decimal
    difference: Optional[Decimal] = None
    status: VarianceStatus
    explanation: str
    unpriced_count: int = 0


# ============================================
# Ledger
# ============================================

PurchaseStatus = Literal["pending", "verified"]

class PurchaseCreate(BaseModel):
    purchased_by: str
    store_name: Optional[str] = None
    purchase_date: Optional[date] = None
    receipt_image_url: Optional[str] = None
    receipt_total: Optional[Decimal] = None
    status: PurchaseStatus = "pending"


class PurchaseLineCreate(BaseModel):
    purchase_id: str
    product_id: str
    quantity: int
    unit_cost: Optional[Decimal] = None


class MovementCreate(BaseModel):
    product_id: str
    quantity: int
    movement_type: Literal["purchase_in"] = "purchase_in"
    moved_by: str
    notes: Optional[str] = None


class SubmissionResult(BaseModel):
    """What a successful submission wrote to the ledger."""

    purchase_id: str
    lines_written: int
    products_created: list[str] = Field(default_factory=list)
    variance: VarianceResult
