# app/models/__init__.py

from app.models.inventory import (
    Category,
    LookupSource,
    Product,
    ProductDraft,
    LookupResult,
    BrandMatch,
    BrandMatchType,
    BrandGroup,
    MatchConfidence,
    ScannedItem,
)
from app.models.receipt import (
    OCRLineItem,
    ReceiptExtraction,
    Alias,
    AliasCreate,
    AssistedConfidence,
    AssistedMatch,
)
from app.models.reconciliation import (
    LineMatch,
    MatchPhase,
    UnpricedItem,
    VarianceResult,
    VarianceStatus,
    PurchaseCreate,
    PurchaseLineCreate,
    MovementCreate,
    SubmissionResult,
)

__all__ = [
    # Inventory
    "Category",
    "LookupSource",
    "Product",
    "ProductDraft",
    "LookupResult",
    "BrandMatch",
    "BrandMatchType",
    "BrandGroup",
    "MatchConfidence",
    "ScannedItem",
    # Receipt
    "OCRLineItem",
    "ReceiptExtraction",
    "Alias",
    "AliasCreate",
    "AssistedConfidence",
    "AssistedMatch",
    # Reconciliation
    "LineMatch",
    "MatchPhase",
    "UnpricedItem",
    "VarianceResult",
    "VarianceStatus",
    "PurchaseCreate",
    "PurchaseLineCreate",
    "MovementCreate",
    "SubmissionResult",
]
