# tests/conftest.py

"""
Shared fixtures.

Settings requires Supabase and Anthropic credentials; dummy values are set
before anything under app/ is imported. Collaborators are in-memory fakes.
"""

import os

os.environ.setdefault("SUPABASE_URL", "https://example.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-service-role-key")
os.environ.setdefault("ANTHROPIC_API_KEY", "test-anthropic-key")
os.environ.setdefault("ENABLE_ASSISTED_MATCHING", "false")

from decimal import Decimal
import uuid

import pytest

from app.core.errors import ExternalServiceError
from app.models import Alias, AliasCreate, Product, ScannedItem, OCRLineItem


# ============================================
# Fakes
# ============================================

class FakeCatalog:
    def __init__(self, products=None):
        self.products: list[Product] = list(products or [])
        self.brand_updates: list[tuple[str, str]] = []

    async def find_by_barcode(self, barcode):
        return next((p for p in self.products if p.barcode == barcode), None)

    async def list_products(self):
        return list(self.products)

    async def list_brands(self):
        brands = []
        for p in self.products:
            if p.brand and p.brand not in brands:
                brands.append(p.brand)
        return brands

    async def create_product(self, draft):
        product = Product(
            id=f"prod-{len(self.products) + 1}",
            barcode=draft.barcode,
            name=draft.name,
            brand=draft.brand,
            category=draft.category,
            default_price=draft.default_price,
            image_url=draft.image_url,
        )
        self.products.append(product)
        return product

    async def update_brand(self, product_id, brand):
        self.brand_updates.append((product_id, brand))
        self.products = [
            p.model_copy(update={"brand": brand}) if p.id == product_id else p
            for p in self.products
        ]


class FakeAliasRepository:
    def __init__(self, aliases=None):
        self.aliases: list[Alias] = list(aliases or [])

    async def load_all(self):
        return list(self.aliases)

    async def append(self, alias: AliasCreate):
        stored = Alias(id=str(uuid.uuid4()), **alias.model_dump())
        self.aliases.append(stored)
        return stored

    async def delete(self, alias_id):
        before = len(self.aliases)
        self.aliases = [a for a in self.aliases if a.id != alias_id]
        return len(self.aliases) < before


class FakeLedger:
    def __init__(self, fail_on_line: int | None = None):
        self.purchases: list = []
        self.lines: list = []
        self.movements: list = []
        self.fail_on_line = fail_on_line

    async def create_purchase(self, purchase):
        self.purchases.append(purchase)
        return f"purchase-{len(self.purchases)}"

    async def add_purchase_line(self, line):
        if self.fail_on_line is not None and len(self.lines) == self.fail_on_line:
            raise ExternalServiceError("ledger", "insert failed")
        self.lines.append(line)

    async def record_movement(self, movement):
        self.movements.append(movement)


# ============================================
# Builders
# ============================================

def make_item(barcode, name, brand=None, product_id=None, quantity=1, **kwargs) -> ScannedItem:
    return ScannedItem(
        barcode=barcode,
        product_id=product_id,
        name=name,
        brand=brand,
        quantity=quantity,
        **kwargs,
    )


def make_line(index, description, price) -> OCRLineItem:
    return OCRLineItem(index=index, description=description, price=Decimal(price))


@pytest.fixture
def coffee_product():
    return Product(
        id="prod-coffee",
        barcode="0850000000017",
        name="Murdered Out",
        brand="Black Rifle Coffee Company",
        category="snack",
    )


@pytest.fixture
def catalog(coffee_product):
    return FakeCatalog([coffee_product])


@pytest.fixture
def alias_repository():
    return FakeAliasRepository()


@pytest.fixture
def ledger():
    return FakeLedger()
