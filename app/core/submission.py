# app/core/submission.py

"""
Writes a finished receiving session to the purchase ledger.

Sequence:
1. Save catalog products for items that were not in the catalog
2. Create the purchase header
3. Per item, a purchase line and a purchase_in inventory movement

The writes are not transactional. A failure after the header exists leaves
the header and the lines already written in place; LedgerWriteError reports
both so the operator can reconcile by hand.
"""

import logging

from app.models import (
    MovementCreate,
    ProductDraft,
    PurchaseCreate,
    PurchaseLineCreate,
    SubmissionResult,
)
from app.core.catalog import CatalogResolver
from app.core.errors import LedgerWriteError, ReceivingError, ReceivingValidationError
from app.core.session import ReceivingSession

logger = logging.getLogger(__name__)


def validate_submission(session: ReceivingSession) -> None:
    """Raise ReceivingValidationError for anything that blocks submission."""
    if not session.items:
        raise ReceivingValidationError("Scan at least one item before submitting")
    if session.declared_total is None:
        raise ReceivingValidationError("Enter the receipt total before submitting")

    unnamed = [i.barcode for i in session.items if not i.product_id and not i.name.strip()]
    if unnamed:
        raise ReceivingValidationError(f"New products need a name: {', '.join(unnamed)}")


async def submit(session: ReceivingSession, resolver: CatalogResolver, ledger) -> SubmissionResult:
    """
    Submit a session that is in the ``submit`` stage.

    ``ledger`` provides ``create_purchase``, ``add_purchase_line`` and
    ``record_movement`` (see app.database.SupabaseLedger).
    """
    session.require_stage("submit", "submit")
    validate_submission(session)

    variance = session.variance()
    if variance.status == "flagged":
        logger.warning(f"Submitting session {session.id} with flagged variance: {variance.explanation}")

    # ============================================
    # 1. New products
    # ============================================
    created: list[str] = []
    for item in session.items:
        if item.product_id:
            continue
        product = await resolver.create_product(ProductDraft(
            barcode=item.barcode,
            name=item.name,
            brand=item.brand,
            category=item.category,
            default_price=item.unit_cost,
            image_url=item.image_url,
        ))
        session.attach_product(item.barcode, product)
        created.append(product.id)

    # ============================================
    # 2. Purchase header
    # ============================================
    purchase_id = await ledger.create_purchase(PurchaseCreate(
        purchased_by=session.purchased_by,
        store_name=session.store_name,
        purchase_date=session.purchase_date,
        receipt_image_url=session.receipt_image_url,
        receipt_total=session.declared_total,
        status="verified" if session.receipt_image_url else "pending",
    ))
    session.purchase_id = purchase_id

    # ============================================
    # 3. Lines and movements
    # ============================================
    written: list[str] = []
    notes = f"Received from {session.store_name}" if session.store_name else "Received"

    for item in session.items:
        try:
            await ledger.add_purchase_line(PurchaseLineCreate(
                purchase_id=purchase_id,
                product_id=item.product_id,
                quantity=item.quantity,
                unit_cost=item.unit_cost,
            ))
            await ledger.record_movement(MovementCreate(
                product_id=item.product_id,
                quantity=item.quantity,
                moved_by=session.purchased_by,
                notes=notes,
            ))
        except ReceivingError as e:
            logger.error(
                f"Ledger write failed for purchase {purchase_id} at {item.barcode} "
                f"after {len(written)} of {len(session.items)} items: {e.message}"
            )
            raise LedgerWriteError(
                f"Purchase {purchase_id} was only partly written: {e.message}",
                purchase_id=purchase_id,
                written_barcodes=written,
            ) from e
        written.append(item.barcode)

    session.mark_submitted(purchase_id)
    logger.info(
        f"Submitted purchase {purchase_id}: {len(written)} lines, "
        f"{len(created)} new products"
    )

    return SubmissionResult(
        purchase_id=purchase_id,
        lines_written=len(written),
        products_created=created,
        variance=variance,
    )
