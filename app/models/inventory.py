# app/models/inventory.py

from decimal import Decimal
from typing import Optional, Literal
from pydantic import BaseModel, Field

Category = Literal["snack", "beverage", "meal"]
LookupSource = Literal["database", "external", "manual"]


# ============================================
# Catalog
# ============================================

class Product(BaseModel):
    """A product record from the catalog."""

    id: str
    barcode: str
    name: str
    brand: Optional[str] = None
    category: Category = "snack"
    default_price: Optional[Decimal] = None
    image_url: Optional[str] = None

    class Config:
        from_attributes = True


class ProductDraft(BaseModel):
    """Product data collected before it exists in the catalog."""

    barcode: str
    name: str = ""
    brand: Optional[str] = None
    category: Category = "snack"
    default_price: Optional[Decimal] = None
    image_url: Optional[str] = None
    brand_suggestions: list[str] = Field(default_factory=list)


class LookupResult(BaseModel):
    """Outcome of resolving a scanned barcode."""

    found: bool
    source: LookupSource
    product: ProductDraft
    product_id: Optional[str] = None


# ============================================
# Brands
# ============================================

BrandMatchType = Literal["exact", "contains", "similar", "none"]

class BrandMatch(BaseModel):
    """Result of normalizing a brand against the existing vocabulary."""

    match: Optional[str] = None
    match_type: BrandMatchType = "none"
    suggestions: list[str] = Field(default_factory=list)


class BrandGroup(BaseModel):
    """Near-duplicate brands found across the catalog."""

    brands: list[str]
    product_ids: list[str]
    canonical: str


# ============================================
# Scanned Items
# ============================================

MatchConfidence = Literal[
    "none",
    "alias",
    "fuzzy-high",
    "fuzzy-medium",
    "fuzzy-low",
    "assisted-high",
    "assisted-medium",
    "assisted-low",
]

class ScannedItem(BaseModel):
    """One physical unit-type observed during a receiving session."""

    barcode: str
    product_id: Optional[str] = None
    name: str = ""
    brand: Optional[str] = None
    category: Category = "snack"
    image_url: Optional[str] = None
    quantity: int = Field(default=1, ge=1)
    unit_cost: Optional[Decimal] = None
    is_new: bool = False
    source: LookupSource = "database"
    confidence: MatchConfidence = "none"
    matched_text: Optional[str] = None
    matched_line_index: Optional[int] = None
    manually_priced: bool = False

    @property
    def match_key(self) -> str:
        """Identifier used to pair this item with receipt lines."""
        return self.product_id or self.barcode

    @property
    def subtotal(self) -> Decimal:
        if self.unit_cost is None:
            return Decimal("0")
        return self.unit_cost * self.quantity

    @property
    def is_matched(self) -> bool:
        return self.matched_text is not None or self.manually_priced

    def clear_match(self) -> None:
        self.unit_cost = None
        self.confidence = "none"
        self.matched_text = None
        self.matched_line_index = None
