# app/core/ai_assist.py

"""
AI-assisted matching.

Runs after the deterministic phases, on whatever they left behind:
1. Send the remaining receipt lines and scanned items in one batch
2. Apply the pairings Claude is confident about, tiered assisted-high/medium/low
3. Leave the rest for the operator
"""

import logging
from typing import Awaitable, Callable, Optional

from app.models import AssistedMatch, LineMatch, OCRLineItem, ScannedItem
from app.integrations import claude

logger = logging.getLogger(__name__)

AssistedMatcher = Callable[
    [list[OCRLineItem], list[ScannedItem], Optional[str]],
    Awaitable[list[AssistedMatch]],
]


async def assisted_match(
    lines: list[OCRLineItem],
    items: list[ScannedItem],
    store_name: Optional[str],
    matcher: Optional[AssistedMatcher] = None,
) -> list[tuple[ScannedItem, OCRLineItem, AssistedMatch]]:
    """
    Pair leftover lines with leftover items through the assisted matcher.

    Returns (item, line, proposal) triples for proposals that point at a
    still-unmatched line and item. Proposals with confidence "none",
    out-of-range indexes, or unknown products are dropped.
    """
    if not lines or not items:
        return []

    matcher = matcher or claude.match_receipt_lines
    proposals = await matcher(lines, items, store_name)

    by_key = {}
    for item in items:
        by_key.setdefault(item.match_key, []).append(item)

    accepted: list[tuple[ScannedItem, OCRLineItem, AssistedMatch]] = []
    used_lines: set[int] = set()
    used_items: set[str] = set()

    for proposal in proposals:
        if proposal.confidence == "none" or not proposal.product_id:
            continue
        if not 0 <= proposal.receipt_index < len(lines) or proposal.receipt_index in used_lines:
            logger.debug(f"Dropping assisted match with bad index {proposal.receipt_index}")
            continue

        line = lines[proposal.receipt_index]
        item = next(
            (i for i in by_key.get(proposal.product_id, []) if i.barcode not in used_items),
            None,
        )
        if item is None or line.matched or item.is_matched:
            continue

        accepted.append((item, line, proposal))
        used_lines.add(proposal.receipt_index)
        used_items.add(item.barcode)

    logger.info(f"Assisted matcher proposed {len(proposals)} pairings, accepted {len(accepted)}")
    return accepted


def explain_match(match: LineMatch) -> str:
    """Operator-facing sentence describing how a price was attached."""
    if match.phase == "alias":
        return f"Matched '{match.receipt_text}' through a remembered alias."
    if match.phase == "fuzzy":
        return f"'{match.receipt_text}' looks like this item (score {match.score:.2f})."
    if match.phase == "assisted":
        return match.reasoning or f"Suggested by the assistant ({match.confidence})."
    return f"Paired with '{match.receipt_text}' by hand."
