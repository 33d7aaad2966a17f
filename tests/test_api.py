# tests/test_api.py

"""
API tests with in-memory collaborators behind FastAPI dependency overrides.
"""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from app.core.catalog import CatalogResolver
from app.core.session import SessionRegistry
from app.dependencies import (
    get_alias_repository,
    get_catalog,
    get_current_user,
    get_ledger,
    get_resolver,
    get_session_registry,
)
from app.main import app
from app.models import Alias

from conftest import FakeAliasRepository, FakeLedger


RECEIPT_TEXT = "BLK RIFLE COFFEE    4.98 F\nBANANAS 0.99\nTOTAL 5.97"


@pytest.fixture
def fakes(catalog):
    registry = SessionRegistry()
    repository = FakeAliasRepository()
    ledger = FakeLedger()
    resolver = CatalogResolver(catalog, AsyncMock(return_value=None))

    app.dependency_overrides[get_current_user] = lambda: "user-1"
    app.dependency_overrides[get_catalog] = lambda: catalog
    app.dependency_overrides[get_resolver] = lambda: resolver
    app.dependency_overrides[get_alias_repository] = lambda: repository
    app.dependency_overrides[get_ledger] = lambda: ledger
    app.dependency_overrides[get_session_registry] = lambda: registry

    yield {"catalog": catalog, "registry": registry, "aliases": repository, "ledger": ledger}

    app.dependency_overrides.clear()


@pytest.fixture
def client(fakes):
    return TestClient(app)


def start(client, store_name="Walmart"):
    response = client.post("/receiving/sessions", json={"store_name": store_name})
    assert response.status_code == 200
    return response.json()["id"]


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")

        assert response.json()["status"] == "healthy"

    def test_ready_counts_sessions(self, client):
        start(client)

        assert client.get("/ready").json()["open_sessions"] == 1


class TestCatalogRoutes:

    def test_lookup_known_barcode(self, client, coffee_product):
        response = client.get(f"/catalog/lookup/{coffee_product.barcode}")

        data = response.json()
        assert data["found"] is True
        assert data["source"] == "database"

    def test_create_product_validation_error_shape(self, client):
        response = client.post("/catalog/products", json={"barcode": "9", "name": "  "})

        assert response.status_code == 422
        assert response.json() == {
            "error": "Product name is required",
            "status_code": 422,
            "endpoint": "/catalog/products",
        }

    def test_normalize_brand(self, client):
        response = client.post("/catalog/brands/normalize", json={"brand": "black rifle"})

        assert response.json()["match"] == "Black Rifle Coffee Company"

    def test_brand_groups(self, client, fakes, coffee_product):
        fakes["catalog"].products.append(coffee_product.model_copy(update={"id": "p2", "brand": "Black Rifle"}))

        groups = client.get("/catalog/brands/groups").json()["groups"]
        response = client.post("/catalog/brands/apply", json={"group": groups[0]})

        assert response.json()["updated"] == 1


class TestReceivingFlow:

    def test_scan_to_submit(self, client, fakes, coffee_product):
        session_id = start(client)
        base = f"/receiving/sessions/{session_id}"

        scan = client.post(f"{base}/scan", json={"barcode": coffee_product.barcode}).json()
        assert scan["item"]["product_id"] == "prod-coffee"
        rescan = client.post(f"{base}/scan", json={"barcode": coffee_product.barcode}).json()
        assert rescan["rescanned"] is True
        assert rescan["item"]["quantity"] == 2

        assert client.post(f"{base}/stage", json={"target": "receipt"}).status_code == 200
        receipt = client.post(f"{base}/receipt/text", json={"text": RECEIPT_TEXT}).json()
        assert len(receipt["lines"]) == 2
        assert receipt["declared_total"] == "5.97"

        reconciled = client.post(f"{base}/stage", json={"target": "reconcile"}).json()
        item = reconciled["items"][0]
        assert item["unit_cost"] == "4.98"
        assert item["confidence"] == "fuzzy-medium"
        assert reconciled["reconciliation"]["matched"][0]["learnable"] is True

        remembered = client.post(f"{base}/aliases", json={"barcode": coffee_product.barcode}).json()
        assert remembered["alias"]["receipt_text"] == "BLK RIFLE COFFEE"
        assert len(fakes["aliases"].aliases) == 1

        variance = client.get(f"{base}/variance").json()
        assert variance["status"] == "flagged"

        client.post(f"{base}/stage", json={"target": "submit"})
        submitted = client.post(f"{base}/submit").json()

        assert submitted["success"] is True
        assert submitted["lines_written"] == 1
        assert fakes["ledger"].lines[0].quantity == 2
        assert len(fakes["registry"]) == 0

    def test_forced_pairing_with_remember(self, client, fakes):
        session_id = start(client)
        base = f"/receiving/sessions/{session_id}"
        client.post(f"{base}/scan", json={"barcode": "000111"})
        client.patch(f"{base}/items/000111", json={"name": "Trail Mix"})
        client.post(f"{base}/items/000111/product", json={})
        client.post(f"{base}/stage", json={"target": "receipt"})
        client.post(f"{base}/receipt/text", json={"text": RECEIPT_TEXT})
        client.post(f"{base}/stage", json={"target": "reconcile"})

        response = client.post(f"{base}/pairs", json={"barcode": "000111", "line_index": 1, "remember": True})

        data = response.json()
        assert data["match"]["phase"] == "manual"
        assert data["alias"]["receipt_text"] == "BANANAS"
        assert data["session"]["items"][0]["manually_priced"] is True

    def test_remember_on_unsaved_item_leaves_pairing_untouched(self, client, fakes):
        session_id = start(client)
        base = f"/receiving/sessions/{session_id}"
        client.post(f"{base}/scan", json={"barcode": "000111"})
        client.post(f"{base}/stage", json={"target": "receipt"})
        client.post(f"{base}/receipt/text", json={"text": RECEIPT_TEXT})
        client.post(f"{base}/stage", json={"target": "reconcile"})

        response = client.post(f"{base}/pairs", json={"barcode": "000111", "line_index": 1, "remember": True})

        assert response.status_code == 422
        assert "catalog" in response.json()["error"]

        item = client.get(base).json()["items"][0]
        assert item["unit_cost"] is None
        assert item["manually_priced"] is False
        assert fakes["aliases"].aliases == []

    def test_unit_cost_accepts_json_number(self, client, coffee_product):
        session_id = start(client)
        base = f"/receiving/sessions/{session_id}"
        client.post(f"{base}/scan", json={"barcode": coffee_product.barcode})

        response = client.patch(f"{base}/items/{coffee_product.barcode}", json={"unit_cost": 3.49})

        assert response.status_code == 200
        assert response.json()["item"]["unit_cost"] == "3.49"

    def test_quantity_zero_removes(self, client, coffee_product):
        session_id = start(client)
        base = f"/receiving/sessions/{session_id}"
        client.post(f"{base}/scan", json={"barcode": coffee_product.barcode})

        response = client.patch(f"{base}/items/{coffee_product.barcode}", json={"quantity": 0})

        assert response.json()["removed"] == coffee_product.barcode
        assert response.json()["session"]["items"] == []

    def test_invalid_transition_shape(self, client):
        session_id = start(client)

        response = client.post(f"/receiving/sessions/{session_id}/stage", json={"target": "submit"})

        assert response.status_code == 409
        assert response.json()["endpoint"] == f"/receiving/sessions/{session_id}/stage"

    def test_submit_requires_total(self, client, coffee_product):
        session_id = start(client)
        base = f"/receiving/sessions/{session_id}"
        client.post(f"{base}/scan", json={"barcode": coffee_product.barcode})
        for target in ("receipt", "reconcile", "submit"):
            client.post(f"{base}/stage", json={"target": target})

        response = client.post(f"{base}/submit")

        assert response.status_code == 422
        assert "receipt total" in response.json()["error"]

    def test_unknown_session(self, client):
        response = client.get("/receiving/sessions/missing")

        assert response.status_code == 404
        assert response.json()["endpoint"] == "/receiving/sessions/missing"

    def test_discard(self, client, fakes):
        session_id = start(client)

        assert client.delete(f"/receiving/sessions/{session_id}").json()["success"] is True
        assert len(fakes["registry"]) == 0


class TestAliasRoutes:

    def test_list_and_delete(self, client, fakes):
        fakes["aliases"].aliases.append(Alias(id="a1", store_name="Walmart", receipt_text="BLK RIFLE", product_id="p"))

        listed = client.get("/aliases", params={"store_name": "walmart"}).json()
        assert listed["count"] == 1

        assert client.delete("/aliases/a1").json()["success"] is True
        assert client.delete("/aliases/a1").status_code == 404
