# app/routers/catalog.py

"""
Catalog routes.

Barcode lookup, product creation and brand clean-up.
"""

from decimal import Decimal
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from typing import Optional

from app.core.brands import find_similar_brand_groups, normalize_brand
from app.core.catalog import CatalogResolver
from app.core.errors import ReceivingValidationError
from app.database import SupabaseCatalog
from app.dependencies import get_catalog, get_current_user, get_resolver
from app.models import BrandGroup, Category, ProductDraft

router = APIRouter()


class ProductRequest(BaseModel):
    barcode: str
    name: str
    brand: Optional[str] = None
    category: Category = "snack"
    default_price: Optional[Decimal] = None
    image_url: Optional[str] = None


class BrandRequest(BaseModel):
    brand: str


class ApplyBrandRequest(BaseModel):
    group: BrandGroup
    canonical: Optional[str] = None


# ============================================
# Lookup
# ============================================

@router.get("/lookup/{barcode}")
async def lookup_barcode(
    barcode: str,
    resolver: CatalogResolver = Depends(get_resolver),
    user_id: str = Depends(get_current_user),
):
    """Resolve a barcode: catalog, then Open Food Facts, then manual entry."""
    result = await resolver.resolve(barcode)
    return result.model_dump(mode="json")


@router.post("/products")
async def create_product(
    request: ProductRequest,
    resolver: CatalogResolver = Depends(get_resolver),
    user_id: str = Depends(get_current_user),
):
    product = await resolver.create_product(ProductDraft(**request.model_dump()))
    return {"success": True, "product": product.model_dump(mode="json")}


# ============================================
# Brands
# ============================================

@router.post("/brands/normalize")
async def normalize_brand_endpoint(
    request: BrandRequest,
    catalog: SupabaseCatalog = Depends(get_catalog),
    user_id: str = Depends(get_current_user),
):
    """Match a typed brand against the brands already in the catalog."""
    existing = await catalog.list_brands()
    return normalize_brand(request.brand, existing).model_dump()


@router.get("/brands/groups")
async def list_brand_groups(
    catalog: SupabaseCatalog = Depends(get_catalog),
    user_id: str = Depends(get_current_user),
):
    """Near-duplicate brands that could be merged."""
    products = await catalog.list_products()
    groups = find_similar_brand_groups(products)
    return {
        "groups": [g.model_dump() for g in groups],
        "count": len(groups),
    }


@router.post("/brands/apply")
async def apply_brand(
    request: ApplyBrandRequest,
    resolver: CatalogResolver = Depends(get_resolver),
    user_id: str = Depends(get_current_user),
):
    """Rewrite every product in a brand group to one canonical brand."""
    if not request.group.product_ids:
        raise ReceivingValidationError("Brand group has no products")

    updated = await resolver.apply_canonical_brand(request.group, request.canonical)
    return {
        "success": True,
        "canonical": request.canonical or request.group.canonical,
        "updated": updated,
    }
