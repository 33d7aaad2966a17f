# app/database.py

"""
Supabase-backed collaborators for the receiving engine.

- SupabaseCatalog: products table
- SupabaseAliasRepository: receipt_aliases table
- SupabaseLedger: inventory_purchases, inventory_purchase_items, inventory_movements
- upload_receipt: receipt images in the storage bucket

Every Supabase failure is re-raised as ExternalServiceError.
"""

from datetime import datetime
from functools import lru_cache
import logging
from typing import Optional
import uuid

from supabase import create_client, Client

from app.config import get_settings
from app.core.errors import ExternalServiceError
from app.models import (
    Alias,
    AliasCreate,
    MovementCreate,
    Product,
    ProductDraft,
    PurchaseCreate,
    PurchaseLineCreate,
)

settings = get_settings()
logger = logging.getLogger(__name__)

PRODUCT_COLUMNS = "id, barcode, name, brand, category, default_price, image_url"


@lru_cache()
def get_supabase_admin() -> Client:
    """Admin client (bypasses RLS). Created on first use."""
    return create_client(
        settings.supabase_url,
        settings.supabase_service_role_key,
    )


def _execute(service: str, query):
    try:
        return query.execute()
    except Exception as e:
        logger.error(f"Supabase {service} request failed: {e}")
        raise ExternalServiceError(service, str(e))


def _money(value) -> Optional[str]:
    return str(value) if value is not None else None


# ============================================
# Catalog
# ============================================

class SupabaseCatalog:
    """Product catalog in the products table."""

    def __init__(self, client: Optional[Client] = None):
        self.client = client or get_supabase_admin()

    async def find_by_barcode(self, barcode: str) -> Optional[Product]:
        response = _execute(
            "catalog",
            self.client.table("products").select(PRODUCT_COLUMNS).eq("barcode", barcode).limit(1),
        )
        return Product(**response.data[0]) if response.data else None

    async def list_products(self) -> list[Product]:
        response = _execute(
            "catalog",
            self.client.table("products").select(PRODUCT_COLUMNS).order("name"),
        )
        return [Product(**row) for row in response.data]

    async def list_brands(self) -> list[str]:
        """Distinct non-empty brands, in first-seen order."""
        response = _execute(
            "catalog",
            self.client.table("products").select("brand").not_.is_("brand", "null"),
        )
        brands: list[str] = []
        for row in response.data:
            brand = (row.get("brand") or "").strip()
            if brand and brand not in brands:
                brands.append(brand)
        return brands

    async def create_product(self, draft: ProductDraft) -> Product:
        data = {
            "barcode": draft.barcode,
            "name": draft.name,
            "brand": draft.brand,
            "category": draft.category,
            "default_price": _money(draft.default_price),
            "image_url": draft.image_url,
        }
        response = _execute("catalog", self.client.table("products").insert(data))
        if not response.data:
            raise ExternalServiceError("catalog", f"Product {draft.barcode} was not created")
        return Product(**response.data[0])

    async def update_brand(self, product_id: str, brand: str) -> None:
        _execute(
            "catalog",
            self.client.table("products").update({"brand": brand}).eq("id", product_id),
        )


# ============================================
# Aliases
# ============================================

class SupabaseAliasRepository:
    """Receipt aliases in the receipt_aliases table, oldest first."""

    def __init__(self, client: Optional[Client] = None):
        self.client = client or get_supabase_admin()

    async def load_all(self) -> list[Alias]:
        response = _execute(
            "aliases",
            self.client.table("receipt_aliases").select("*").order("created_at"),
        )
        return [Alias(**row) for row in response.data]

    async def append(self, alias: AliasCreate) -> Alias:
        response = _execute(
            "aliases",
            self.client.table("receipt_aliases").insert(alias.model_dump()),
        )
        if not response.data:
            raise ExternalServiceError("aliases", "Alias was not saved")
        return Alias(**response.data[0])

    async def delete(self, alias_id: str) -> bool:
        response = _execute(
            "aliases",
            self.client.table("receipt_aliases").delete().eq("id", alias_id),
        )
        return bool(response.data)


# ============================================
# Ledger
# ============================================

class SupabaseLedger:
    """Purchase ledger. Each call is its own write; nothing is transactional."""

    def __init__(self, client: Optional[Client] = None):
        self.client = client or get_supabase_admin()

    async def create_purchase(self, purchase: PurchaseCreate) -> str:
        data = purchase.model_dump(mode="json")
        response = _execute("ledger", self.client.table("inventory_purchases").insert(data))
        if not response.data:
            raise ExternalServiceError("ledger", "Purchase was not created")
        return response.data[0]["id"]

    async def add_purchase_line(self, line: PurchaseLineCreate) -> None:
        _execute(
            "ledger",
            self.client.table("inventory_purchase_items").insert(line.model_dump(mode="json")),
        )

    async def record_movement(self, movement: MovementCreate) -> None:
        _execute(
            "ledger",
            self.client.table("inventory_movements").insert(movement.model_dump(mode="json")),
        )


# ============================================
# Storage
# ============================================

async def upload_receipt(
    content: bytes,
    filename: str,
    content_type: str = "image/jpeg",
    client: Optional[Client] = None,
) -> str:
    """Upload a receipt image and return its public URL."""
    client = client or get_supabase_admin()
    extension = filename.rsplit(".", 1)[-1].lower() if "." in filename else "jpg"
    path = f"{datetime.now():%Y/%m}/{uuid.uuid4()}.{extension}"
    bucket = client.storage.from_(settings.receipt_bucket)

    try:
        bucket.upload(path, content, {"content-type": content_type})
        url = bucket.get_public_url(path)
    except Exception as e:
        logger.error(f"Receipt upload failed: {e}")
        raise ExternalServiceError("storage", str(e))

    logger.info(f"Uploaded receipt to {settings.receipt_bucket}/{path}")
    return url
