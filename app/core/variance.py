# app/core/variance.py

"""
Receipt variance classification.

Compares the declared receipt total with what the priced scanned items add
up to. The result only informs the operator; it never blocks submission.
"""

from decimal import Decimal
from typing import Optional

from app.models import ScannedItem, VarianceResult
from app.config import get_settings

settings = get_settings()


def check_variance(
    declared_total: Optional[Decimal],
    items: list[ScannedItem],
) -> VarianceResult:
    """
    Classify the gap between the declared total and the item subtotals.

    difference < tolerance (1.00) -> acceptable (likely just tax)
    difference >= tolerance       -> flagged for review
    no declared total             -> unknown
    """
    computed = sum((item.subtotal for item in items), Decimal("0"))
    unpriced = len([i for i in items if i.unit_cost is None])

    # ============================================
    # Nothing to compare against
    # ============================================
    if declared_total is None:
        return VarianceResult(
            computed_total=computed,
            status="unknown",
            explanation=f"No receipt total entered. Scanned items add up to ${computed:,.2f}.",
            unpriced_count=unpriced,
        )

    difference = abs(declared_total - computed)

    # ============================================
    # Within tolerance
    # ============================================
    if difference < settings.variance_tolerance:
        return VarianceResult(
            declared_total=declared_total,
            computed_total=computed,
            difference=difference,
            status="acceptable",
            explanation=(
                f"Items add up to ${computed:,.2f} against a receipt total of "
                f"${declared_total:,.2f}. The ${difference:,.2f} gap is likely just tax."
            ),
            unpriced_count=unpriced,
        )

    # ============================================
    # Needs a look
    # ============================================
    direction = "more" if declared_total > computed else "less"
    explanation = (
        f"Receipt total ${declared_total:,.2f} is ${difference:,.2f} {direction} than "
        f"the scanned items (${computed:,.2f}). Check quantities and unit costs."
    )
    if unpriced:
        explanation += f" {unpriced} item{'s' if unpriced != 1 else ''} still ha{'ve' if unpriced != 1 else 's'} no price."

    return VarianceResult(
        declared_total=declared_total,
        computed_total=computed,
        difference=difference,
        status="flagged",
        explanation=explanation,
        unpriced_count=unpriced,
    )
