# tests/test_catalog.py

"""
Tests for barcode resolution: catalog, Open Food Facts, manual entry.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from app.core.catalog import CatalogResolver, draft_from_external, infer_category, strip_brand_prefix
from app.core.errors import ReceivingValidationError
from app.integrations import openfoodfacts
from app.models import BrandGroup, ProductDraft

from conftest import FakeCatalog


def off_payload(name, brands="", tags=None):
    return {
        "status": 1,
        "product": {
            "product_name": name,
            "brands": brands,
            "categories_tags": tags or [],
            "image_front_small_url": "https://images.example/front.jpg",
        },
    }


class TestResolve:

    @pytest.mark.asyncio
    async def test_catalog_hit_skips_external_lookup(self, catalog, coffee_product):
        external = AsyncMock()
        resolver = CatalogResolver(catalog, external)

        result = await resolver.resolve(coffee_product.barcode)

        assert result.found is True
        assert result.source == "database"
        assert result.product_id == "prod-coffee"
        assert result.product.brand == "Black Rifle Coffee Company"
        external.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_external_hit(self, catalog):
        external = AsyncMock(return_value=off_payload(
            "Black Rifle Coffee Company Beyond Black", brands="Black Rifle Coffee Company, Other",
        ))
        resolver = CatalogResolver(catalog, external)

        result = await resolver.resolve("0850000000024")

        assert result.found is False
        assert result.source == "external"
        assert result.product_id is None
        assert result.product.name == "Beyond Black"
        assert result.product.brand == "Black Rifle Coffee Company"
        assert result.product.image_url == "https://images.example/front.jpg"

    @pytest.mark.asyncio
    async def test_external_name_sharing_brand_words(self, catalog):
        external = AsyncMock(return_value={
            "status": 1,
            "product": {
                "product_name": "Black Rifle Coffee Murdered Out",
                "brands": "Black Rifle Coffee Company",
            },
        })
        resolver = CatalogResolver(catalog, external)

        result = await resolver.resolve("012345678905")

        assert result.found is False
        assert result.source == "external"
        assert result.product.barcode == "012345678905"
        assert result.product.brand == "Black Rifle Coffee Company"
        assert result.product.name == "Murdered Out"
        assert result.product.category == "snack"
        external.assert_awaited_once_with("012345678905")

    @pytest.mark.asyncio
    async def test_external_failure_is_a_miss(self, catalog):
        resolver = CatalogResolver(catalog, AsyncMock(side_effect=httpx.ConnectError("offline")))

        result = await resolver.resolve("000111")

        assert result.found is False
        assert result.source == "manual"
        assert result.product.barcode == "000111"
        assert result.product.name == ""

    @pytest.mark.asyncio
    async def test_external_status_zero_is_a_miss(self, catalog):
        resolver = CatalogResolver(catalog, AsyncMock(return_value={"status": 0}))

        result = await resolver.resolve("000111")

        assert result.source == "manual"

    @pytest.mark.asyncio
    async def test_blank_barcode_rejected(self, catalog):
        resolver = CatalogResolver(catalog, AsyncMock())

        with pytest.raises(ReceivingValidationError):
            await resolver.resolve("   ")


class TestExternalDraft:

    def test_brand_stripped_from_name(self):
        draft = draft_from_external(
            "1",
            off_payload("Black Rifle Coffee Company Murdered Out", "Black Rifle Coffee Company")["product"],
            ["Black Rifle Coffee Company"],
        )

        assert draft.name == "Murdered Out"
        assert draft.brand == "Black Rifle Coffee Company"
        assert draft.category == "snack"

    def test_short_brand_normalized_to_existing(self):
        draft = draft_from_external(
            "1",
            off_payload("Black Rifle Murdered Out", "Black Rifle")["product"],
            ["Black Rifle Coffee Company"],
        )

        assert draft.brand == "Black Rifle Coffee Company"
        assert draft.name == "Murdered Out"

    def test_brand_from_name_when_field_missing(self):
        draft = draft_from_external("1", off_payload("Doritos Nacho Cheese")["product"], [])

        assert draft.brand == "Doritos"
        assert draft.name == "Nacho Cheese"

    def test_similar_brand_attaches_suggestions(self):
        draft = draft_from_external(
            "1",
            off_payload("Monster Beverage Ultra", "Monster Beverage")["product"],
            ["Monster Energy"],
        )

        assert draft.brand == "Monster Beverage"
        assert draft.brand_suggestions == ["Monster Energy"]

    def test_missing_name(self):
        draft = draft_from_external("1", {"brands": ""}, [])

        assert draft.name == "Unknown Product"

    def test_category_from_tags(self):
        draft = draft_from_external(
            "1",
            off_payload("Celsius Sparkling Orange", "Celsius", ["en:beverages"])["product"],
            [],
        )

        assert draft.category == "beverage"


class TestNameHelpers:

    def test_possessive_brand(self):
        assert strip_brand_prefix("Reese's Peanut Butter Cups", "Reese") == "Peanut Butter Cups"

    def test_brand_only_name_unchanged(self):
        assert strip_brand_prefix("Monster", "Monster") == "Monster"

    def test_brand_not_at_start(self):
        assert strip_brand_prefix("Original Doritos", "Doritos") == "Original Doritos"

    @pytest.mark.parametrize("name,category", [
        ("Sparkling Water", "beverage"),
        ("Cold Brew Coffee", "beverage"),
        ("Turkey Sandwich", "meal"),
        ("Murdered Out", "snack"),
        ("Bang Blue Razz", "snack"),
    ])
    def test_infer_category(self, name, category):
        assert infer_category(name) == category


class TestCatalogWrites:

    @pytest.mark.asyncio
    async def test_create_product(self, catalog):
        resolver = CatalogResolver(catalog, AsyncMock())

        product = await resolver.create_product(ProductDraft(barcode="9", name="  Trail Mix ", brand=" "))

        assert product.id == "prod-2"
        assert product.name == "Trail Mix"
        assert product.brand is None

    @pytest.mark.asyncio
    async def test_create_product_requires_name(self, catalog):
        resolver = CatalogResolver(catalog, AsyncMock())

        with pytest.raises(ReceivingValidationError):
            await resolver.create_product(ProductDraft(barcode="9", name="   "))

    @pytest.mark.asyncio
    async def test_apply_canonical_brand(self, catalog, coffee_product):
        catalog.products.append(coffee_product.model_copy(update={"id": "p2", "brand": "Black Rifle"}))
        resolver = CatalogResolver(catalog, AsyncMock())
        group = BrandGroup(
            brands=["Black Rifle", "Black Rifle Coffee Company"],
            product_ids=["prod-coffee", "p2"],
            canonical="Black Rifle Coffee Company",
        )

        updated = await resolver.apply_canonical_brand(group)

        assert updated == 1
        assert catalog.brand_updates == [("p2", "Black Rifle Coffee Company")]

    @pytest.mark.asyncio
    async def test_apply_unknown_canonical_rejected(self, catalog):
        resolver = CatalogResolver(catalog, AsyncMock())
        group = BrandGroup(brands=["A1", "A1 Sauce"], product_ids=["x"], canonical="A1 Sauce")

        with pytest.raises(ReceivingValidationError):
            await resolver.apply_canonical_brand(group, "Heinz")


class TestOpenFoodFacts:

    @pytest.mark.asyncio
    async def test_fetch_product(self):
        response = MagicMock(status_code=200)
        response.json.return_value = off_payload("Doritos Nacho Cheese", "Doritos")

        with patch("app.integrations.openfoodfacts.httpx.AsyncClient") as client_cls:
            http = client_cls.return_value.__aenter__.return_value
            http.get = AsyncMock(return_value=response)

            data = await openfoodfacts.fetch_product("0028400090858")

        assert data["status"] == 1
        url = http.get.await_args.args[0]
        assert url.endswith("/0028400090858.json")

    @pytest.mark.asyncio
    async def test_non_200_is_none(self):
        with patch("app.integrations.openfoodfacts.httpx.AsyncClient") as client_cls:
            http = client_cls.return_value.__aenter__.return_value
            http.get = AsyncMock(return_value=MagicMock(status_code=404))

            assert await openfoodfacts.fetch_product("000") is None
