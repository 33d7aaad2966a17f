# tests/test_submission.py

"""
Tests for writing a receiving session to the purchase ledger.
"""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from app.core.catalog import CatalogResolver
from app.core.errors import ActionNotAllowed, LedgerWriteError, ReceivingValidationError
from app.core.session import ReceivingSession
from app.core.submission import submit

from conftest import FakeLedger


@pytest.fixture
def resolver(catalog):
    return CatalogResolver(catalog, AsyncMock(return_value=None))


async def ready_session(resolver, barcodes, declared_total="10.00", image_url=None):
    session = ReceivingSession("user-1", store_name="Walmart")
    for barcode in barcodes:
        await session.scan(barcode, resolver)
    for item in session.items:
        if not item.product_id:
            session.edit_details(item.barcode, name="Trail Mix")
        session.set_unit_cost(item.barcode, "4.50")

    session.transition("receipt")
    if image_url:
        session.receipt_image_url = image_url
    if declared_total is not None:
        session.set_declared_total(declared_total)
    await session.advance("reconcile")
    session.transition("submit")
    return session


class TestSubmit:

    @pytest.mark.asyncio
    async def test_writes_purchase_lines_and_movements(self, resolver, coffee_product, ledger):
        session = await ready_session(resolver, [coffee_product.barcode], image_url="https://files.example/r.jpg")

        result = await submit(session, resolver, ledger)

        assert result.purchase_id == "purchase-1"
        assert result.lines_written == 1
        assert session.stage == "submitted"

        purchase = ledger.purchases[0]
        assert purchase.purchased_by == "user-1"
        assert purchase.store_name == "Walmart"
        assert purchase.receipt_total == Decimal("10.00")
        assert purchase.status == "verified"

        assert ledger.lines[0].product_id == "prod-coffee"
        assert ledger.lines[0].unit_cost == Decimal("4.50")
        assert ledger.movements[0].movement_type == "purchase_in"
        assert ledger.movements[0].moved_by == "user-1"
        assert ledger.movements[0].notes == "Received from Walmart"

    @pytest.mark.asyncio
    async def test_without_image_is_pending(self, resolver, coffee_product, ledger):
        session = await ready_session(resolver, [coffee_product.barcode])

        await submit(session, resolver, ledger)

        assert ledger.purchases[0].status == "pending"

    @pytest.mark.asyncio
    async def test_new_products_created_first(self, resolver, catalog, ledger):
        session = await ready_session(resolver, ["000111"])

        result = await submit(session, resolver, ledger)

        assert result.products_created == ["prod-2"]
        assert catalog.products[-1].default_price == Decimal("4.50")
        assert ledger.lines[0].product_id == "prod-2"

    @pytest.mark.asyncio
    async def test_variance_reported(self, resolver, coffee_product, ledger):
        session = await ready_session(resolver, [coffee_product.barcode], declared_total="4.60")

        result = await submit(session, resolver, ledger)

        assert result.variance.status == "acceptable"


class TestSubmitValidation:

    @pytest.mark.asyncio
    async def test_requires_items(self, resolver, ledger):
        session = await ready_session(resolver, [])

        with pytest.raises(ReceivingValidationError):
            await submit(session, resolver, ledger)
        assert ledger.purchases == []

    @pytest.mark.asyncio
    async def test_requires_declared_total(self, resolver, coffee_product, ledger):
        session = await ready_session(resolver, [coffee_product.barcode], declared_total=None)

        with pytest.raises(ReceivingValidationError):
            await submit(session, resolver, ledger)

    @pytest.mark.asyncio
    async def test_new_item_needs_name(self, resolver, ledger):
        session = await ready_session(resolver, ["000111"])
        session.items[0].name = ""

        with pytest.raises(ReceivingValidationError):
            await submit(session, resolver, ledger)

    @pytest.mark.asyncio
    async def test_must_be_in_submit_stage(self, resolver, coffee_product, ledger):
        session = ReceivingSession("user-1")
        await session.scan(coffee_product.barcode, resolver)

        with pytest.raises(ActionNotAllowed):
            await submit(session, resolver, ledger)


class TestPartialWrites:

    @pytest.mark.asyncio
    async def test_failure_mid_sequence_reports_written_lines(self, resolver, catalog, coffee_product):
        ledger = FakeLedger(fail_on_line=1)
        session = await ready_session(resolver, [coffee_product.barcode, "000111"])

        with pytest.raises(LedgerWriteError) as exc_info:
            await submit(session, resolver, ledger)

        error = exc_info.value
        assert error.purchase_id == "purchase-1"
        assert error.written_barcodes == [coffee_product.barcode]
        assert error.to_dict()["purchase_id"] == "purchase-1"

        # Nothing is rolled back
        assert len(ledger.purchases) == 1
        assert len(ledger.lines) == 1
        assert session.stage == "submit"
        assert session.purchase_id == "purchase-1"
