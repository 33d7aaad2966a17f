# app/core/matching.py

"""
Receipt line matching engine.

Pairs scanned items with OCR receipt lines in fixed priority order:
1. Aliases (remembered human confirmations)
2. Fuzzy token scoring
3. Assisted matching (one batched Claude call, optional)

Matching is greedy per item in scan order, not a global optimum: the
first scanned item wins contention for a receipt line.
"""

from datetime import datetime
import logging
from typing import Optional

from app.models import (
    LineMatch,
    MatchConfidence,
    MatchPhase,
    OCRLineItem,
    ScannedItem,
    UnpricedItem,
)
from app.core.aliases import AliasStore
from app.core.ai_assist import AssistedMatcher, assisted_match, explain_match
from app.core.confidence import calculate_confidence, find_best_line, get_confidence_level
from app.core.errors import ExternalServiceError, ReceivingValidationError
from app.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)


class ReconciliationResult:
    """Result of a matching run."""

    def __init__(self):
        self.matched: list[LineMatch] = []
        self.unmatched_lines: list[OCRLineItem] = []
        self.unpriced_items: list[UnpricedItem] = []
        self.assisted_error: Optional[str] = None
        self.duration_ms: int = 0

    @property
    def learnable(self) -> list[LineMatch]:
        """Matches the operator can confirm as aliases ("remember this match")."""
        return [m for m in self.matched if m.learnable]

    @property
    def by_phase(self) -> dict:
        counts = {"alias": 0, "fuzzy": 0, "assisted": 0, "manual": 0}
        for match in self.matched:
            counts[match.phase] += 1
        return counts

    def to_dict(self) -> dict:
        """Convert to dictionary for API response."""
        return {
            "matched": [
                {**m.model_dump(mode="json"), "explanation": explain_match(m), "learnable": m.learnable}
                for m in self.matched
            ],
            "unmatched_lines": [line.model_dump(mode="json") for line in self.unmatched_lines],
            "unpriced_items": [u.model_dump(mode="json") for u in self.unpriced_items],
            "by_phase": self.by_phase,
            "assisted_error": self.assisted_error,
            "duration_ms": self.duration_ms,
        }


async def reconcile(
    items: list[ScannedItem],
    lines: list[OCRLineItem],
    store_name: Optional[str] = None,
    alias_store: Optional[AliasStore] = None,
    assisted_matcher: Optional[AssistedMatcher] = None,
    use_assisted: Optional[bool] = None,
) -> ReconciliationResult:
    """
    Main reconciliation function.

    Automatic matches from an earlier run are cleared first; manually
    priced items and the lines they hold are kept.
    """
    start_time = datetime.now()
    result = ReconciliationResult()

    reset_matches(items, lines)

    # Manual pairings carried over from an earlier run
    for item in items:
        if item.manually_priced and item.matched_line_index is not None:
            line = _line_at(lines, item.matched_line_index)
            if line is not None:
                result.matched.append(_record(item, line, "manual"))

    # ============================================
    # Phase 1: Aliases
    # ============================================
    if alias_store is not None:
        for item, line in alias_store.match_lines(items, lines):
            result.matched.append(apply_match(item, line, "alias", "alias"))

    # ============================================
    # Phase 2: Fuzzy scoring
    # ============================================
    for item in items:
        if item.is_matched:
            continue

        best = find_best_line(item, lines)
        if best:
            line, score = best
            result.matched.append(apply_match(
                item, line, get_confidence_level(score), "fuzzy", score=score,
            ))

    # ============================================
    # Phase 3: Assisted matching
    # ============================================
    if use_assisted is None:
        use_assisted = settings.enable_assisted_matching

    remaining_lines = [line for line in lines if not line.matched]
    remaining_items = [item for item in items if not item.is_matched]

    if use_assisted and remaining_lines and remaining_items:
        try:
            accepted = await assisted_match(
                remaining_lines, remaining_items, store_name, matcher=assisted_matcher,
            )
            for item, line, proposal in accepted:
                result.matched.append(apply_match(
                    item, line, f"assisted-{proposal.confidence}", "assisted",
                    reasoning=proposal.reasoning,
                ))
        except ExternalServiceError as e:
            logger.warning(f"Assisted matching unavailable: {e.message}")
            result.assisted_error = e.message
        except Exception as e:
            logger.warning(f"Assisted matching failed: {e}")
            result.assisted_error = str(e)

    # ============================================
    # Phase 4: Collect leftovers
    # ============================================
    collect_leftovers(result, items, lines)

    result.duration_ms = int((datetime.now() - start_time).total_seconds() * 1000)

    logger.info(
        f"Reconciled {len(items)} items against {len(lines)} lines: "
        f"{result.by_phase}, {len(result.unmatched_lines)} lines left, "
        f"{len(result.unpriced_items)} items unpriced"
    )
    return result


def collect_leftovers(
    result: ReconciliationResult,
    items: list[ScannedItem],
    lines: list[OCRLineItem],
) -> None:
    """Rebuild the unmatched-line and unpriced-item lists from current state."""
    result.unmatched_lines = [line for line in lines if not line.matched]
    result.unpriced_items = [
        UnpricedItem(
            barcode=item.barcode,
            name=item.name,
            brand=item.brand,
            quantity=item.quantity,
            pairing_options=result.unmatched_lines,
        )
        for item in items
        if not item.is_matched and item.unit_cost is None
    ]


def apply_match(
    item: ScannedItem,
    line: OCRLineItem,
    confidence: MatchConfidence,
    phase: MatchPhase,
    score: Optional[float] = None,
    reasoning: Optional[str] = None,
) -> LineMatch:
    """Attach a receipt line's price to a scanned item."""
    item.unit_cost = line.price
    item.confidence = confidence
    item.matched_text = line.description
    item.matched_line_index = line.index
    line.mark_matched(item.product_id)
    return _record(item, line, phase, score=score, reasoning=reasoning)


def force_match(
    items: list[ScannedItem],
    lines: list[OCRLineItem],
    barcode: str,
    line_index: int,
) -> LineMatch:
    """
    Pair an item with a line by hand.

    Releases whatever line the item held before. The pairing is manual and
    survives later reconciliation runs; its tier reflects the fuzzy score.
    """
    item = next((i for i in items if i.barcode == barcode), None)
    if item is None:
        raise ReceivingValidationError(f"No scanned item with barcode {barcode}")

    line = _line_at(lines, line_index)
    if line is None:
        raise ReceivingValidationError(f"No receipt line {line_index}")
    if line.matched and item.matched_line_index != line.index:
        raise ReceivingValidationError(f"Receipt line {line_index} is already matched")

    release_match(item, lines)

    score = calculate_confidence(item.brand, item.name, line.description)
    match = apply_match(item, line, get_confidence_level(score), "manual", score=score)
    item.manually_priced = True
    return match


def release_match(item: ScannedItem, lines: list[OCRLineItem]) -> None:
    """Undo an item's pairing, freeing its line."""
    if item.matched_line_index is not None:
        line = _line_at(lines, item.matched_line_index)
        if line is not None:
            line.clear_match()
    item.clear_match()
    item.manually_priced = False


def reset_matches(items: list[ScannedItem], lines: list[OCRLineItem]) -> None:
    """Clear automatic matches; manual prices and pairings stay."""
    kept_lines: set[int] = set()
    for item in items:
        if item.manually_priced:
            if item.matched_line_index is not None:
                kept_lines.add(item.matched_line_index)
            continue
        item.clear_match()

    for line in lines:
        if line.index not in kept_lines:
            line.clear_match()


def _record(
    item: ScannedItem,
    line: OCRLineItem,
    phase: MatchPhase,
    score: Optional[float] = None,
    reasoning: Optional[str] = None,
) -> LineMatch:
    return LineMatch(
        barcode=item.barcode,
        product_id=item.product_id,
        line_index=line.index,
        receipt_text=line.description,
        unit_cost=item.unit_cost if item.unit_cost is not None else line.price,
        confidence=item.confidence,
        phase=phase,
        score=score,
        reasoning=reasoning,
    )


def _line_at(lines: list[OCRLineItem], index: int) -> Optional[OCRLineItem]:
    return next((line for line in lines if line.index == index), None)
