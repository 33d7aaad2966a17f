# app/core/catalog.py

"""
Barcode resolution against the layered product catalog.

1. Local catalog (exact barcode)
2. External product lookup (Open Food Facts)
3. Manual entry

A miss is not an error: it is the designed path to manual entry. External
lookup failures are logged and treated as a miss.
"""

import logging
from typing import Awaitable, Callable, Optional

from app.models import BrandGroup, Category, LookupResult, Product, ProductDraft
from app.core.brands import resolve_brand
from app.core.errors import ReceivingValidationError

logger = logging.getLogger(__name__)

ExternalLookup = Callable[[str], Awaitable[Optional[dict]]]

BEVERAGE_KEYWORDS = ("water", "soda", "juice", "tea", "coffee", "energy", "drink", "beverage")
MEAL_KEYWORDS = ("meal", "prepared", "sandwich")
VALID_CATEGORIES = ("snack", "beverage", "meal")


class CatalogResolver:
    """
    Resolves scanned barcodes to products.

    ``catalog`` is the catalog collaborator (see app.database.SupabaseCatalog):
    ``find_by_barcode``, ``list_brands``, ``list_products``,
    ``create_product`` and ``update_brand``.
    ``external_lookup`` takes a barcode and returns the external product
    payload, or None.
    """

    def __init__(self, catalog, external_lookup: ExternalLookup):
        self.catalog = catalog
        self.external_lookup = external_lookup

    async def resolve(self, barcode: str) -> LookupResult:
        barcode = barcode.strip()
        if not barcode:
            raise ReceivingValidationError("barcode is required")

        # ============================================
        # 1. Local catalog
        # ============================================
        product = await self.catalog.find_by_barcode(barcode)
        if product is not None:
            return LookupResult(
                found=True,
                source="database",
                product_id=product.id,
                product=ProductDraft(
                    barcode=product.barcode,
                    name=product.name,
                    brand=product.brand,
                    category=product.category,
                    default_price=product.default_price,
                    image_url=product.image_url,
                ),
            )

        # ============================================
        # 2. External lookup
        # ============================================
        try:
            payload = await self.external_lookup(barcode)
        except Exception as e:
            logger.warning(f"External lookup failed for {barcode}: {e}")
            payload = None

        if payload and payload.get("status") == 1 and payload.get("product"):
            existing_brands = await self.catalog.list_brands()
            draft = draft_from_external(barcode, payload["product"], existing_brands)
            return LookupResult(found=False, source="external", product=draft)

        # ============================================
        # 3. Manual entry
        # ============================================
        return LookupResult(found=False, source="manual", product=ProductDraft(barcode=barcode))

    async def create_product(self, draft: ProductDraft) -> Product:
        """Validate and save a new product; returns the stored record."""
        name = (draft.name or "").strip()
        if not name:
            raise ReceivingValidationError("Product name is required")
        if draft.category not in VALID_CATEGORIES:
            raise ReceivingValidationError(f"Invalid category: {draft.category}")

        data = draft.model_copy(update={
            "name": name,
            "brand": (draft.brand or "").strip() or None,
        })
        product = await self.catalog.create_product(data)
        logger.info(f"Created product {product.id} for barcode {product.barcode}")
        return product

    async def apply_canonical_brand(self, group: BrandGroup, canonical: Optional[str] = None) -> int:
        """Rewrite every product in a brand group to one brand. Returns the update count."""
        canonical = canonical or group.canonical
        if canonical not in group.brands:
            raise ReceivingValidationError(f"'{canonical}' is not one of the grouped brands")

        products = await self.catalog.list_products()
        updated = 0
        for product in products:
            if product.id in group.product_ids and product.brand != canonical:
                await self.catalog.update_brand(product.id, canonical)
                updated += 1
        return updated


def draft_from_external(barcode: str, product: dict, existing_brands: list[str]) -> ProductDraft:
    """Build a product draft from an external lookup payload."""
    name = (product.get("product_name") or product.get("product_name_en") or "").strip()
    brand_field = (product.get("brands") or "").split(",")[0].strip()

    if brand_field:
        brand = brand_field
    else:
        brand = _brand_from_name(name, existing_brands)

    if brand:
        name = strip_brand_prefix(name, brand)

    brand, brand_match = resolve_brand(brand, existing_brands)

    tags = " ".join(product.get("categories_tags") or [])
    return ProductDraft(
        barcode=barcode,
        name=name or "Unknown Product",
        brand=brand,
        category=infer_category(name, tags),
        image_url=product.get("image_front_small_url") or product.get("image_url"),
        brand_suggestions=brand_match.suggestions if brand_match.match_type == "similar" else [],
    )


def strip_brand_prefix(name: str, brand: str) -> str:
    """
    Remove the brand's leading words from the start of a name.

    Only whole words are removed, and a possessive ("Reese's") counts as the
    brand word. The name is returned unchanged when nothing would be left.
    """
    name_words = name.split()
    brand_words = brand.split()
    shared = 0

    for name_word, brand_word in zip(name_words, brand_words):
        nw, bw = name_word.lower(), brand_word.lower()
        if nw == bw:
            shared += 1
        elif nw.startswith(bw + "'") or nw.startswith(bw + "’"):
            shared += 1
            break
        else:
            break

    if shared == 0 or shared >= len(name_words):
        return name
    return " ".join(name_words[shared:])


def infer_category(name: str, tags: str = "") -> Category:
    """Keyword-based category from a product name and category tags."""
    text = f"{name} {tags}".lower()
    if any(k in text for k in BEVERAGE_KEYWORDS):
        return "beverage"
    if any(k in text for k in MEAL_KEYWORDS):
        return "meal"
    return "snack"


def _brand_from_name(name: str, existing_brands: list[str]) -> Optional[str]:
    """Guess a brand from the leading words of a name with no brand field."""
    lowered = name.lower()
    for brand in sorted(existing_brands, key=len, reverse=True):
        b = brand.lower()
        if lowered.startswith(b + " ") or lowered.startswith(b + "'"):
            return brand

    words = name.split()
    if len(words) > 1:
        return words[0]
    return None
