# app/core/session.py

"""
Receiving session workflow.

A session walks an operator through receiving one purchase:

    scan -> receipt -> reconcile -> submit

with back-edges reconcile -> receipt, reconcile -> scan and
submit -> reconcile for corrections. Entering reconcile from receipt runs
the matching pipeline. A session ends when it is submitted to the ledger
or discarded; it lives only in memory until then.
"""

from datetime import date, datetime
from decimal import Decimal
import logging
from typing import Awaitable, Callable, Literal, Optional
import uuid

from app.models import (
    Alias,
    LineMatch,
    LookupResult,
    OCRLineItem,
    Product,
    ScannedItem,
    VarianceResult,
)
from app.core.aliases import AliasStore
from app.core.ai_assist import AssistedMatcher
from app.core.catalog import CatalogResolver
from app.core.errors import (
    ActionNotAllowed,
    InvalidTransition,
    ReceivingValidationError,
    SessionNotFound,
)
from app.core.matching import (
    ReconciliationResult,
    collect_leftovers,
    force_match,
    reconcile,
    release_match,
)
from app.core.normalizers import normalize_amount
from app.core.receipt_parser import extract_line_items
from app.core.variance import check_variance

logger = logging.getLogger(__name__)

Stage = Literal["scan", "receipt", "reconcile", "submit", "submitted", "discarded"]
Transcriber = Callable[[str], Awaitable[str]]

TRANSITIONS: dict[str, set[str]] = {
    "scan": {"receipt"},
    "receipt": {"reconcile"},
    "reconcile": {"submit", "receipt", "scan"},
    "submit": {"reconcile"},
    "submitted": set(),
    "discarded": set(),
}
TERMINAL = ("submitted", "discarded")


class ReceivingSession:
    """In-memory aggregate for one receiving flow."""

    def __init__(
        self,
        purchased_by: str,
        store_name: Optional[str] = None,
        purchase_date: Optional[date] = None,
    ):
        self.id = str(uuid.uuid4())
        self.purchased_by = purchased_by
        self.store_name = store_name
        self.purchase_date = purchase_date or date.today()
        self.stage: Stage = "scan"
        self.items: list[ScannedItem] = []
        self.lines: list[OCRLineItem] = []
        self.receipt_image_url: Optional[str] = None
        self.declared_total: Optional[Decimal] = None
        self.detected_total: Optional[Decimal] = None
        self.ocr_status: Optional[str] = None
        self.last_result: Optional[ReconciliationResult] = None
        self.purchase_id: Optional[str] = None
        self.created_at = datetime.now()

    # ============================================
    # Workflow
    # ============================================

    def can_move_to(self, target: str) -> bool:
        return target in TRANSITIONS.get(self.stage, set())

    def transition(self, target: str) -> None:
        if not self.can_move_to(target):
            raise InvalidTransition(self.stage, target)
        logger.debug(f"Session {self.id}: {self.stage} -> {target}")
        self.stage = target

    async def advance(
        self,
        target: str,
        alias_store: Optional[AliasStore] = None,
        assisted_matcher: Optional[AssistedMatcher] = None,
    ) -> Optional[ReconciliationResult]:
        """
        Move to another stage.

        receipt -> reconcile runs the matching pipeline and returns its
        result; other moves return None.
        """
        previous = self.stage
        self.transition(target)
        if previous == "receipt" and target == "reconcile":
            return await self.run_matching(alias_store, assisted_matcher)
        return None

    async def run_matching(
        self,
        alias_store: Optional[AliasStore] = None,
        assisted_matcher: Optional[AssistedMatcher] = None,
    ) -> ReconciliationResult:
        self.require_stage("run matching", "reconcile")
        self.last_result = await reconcile(
            self.items,
            self.lines,
            store_name=self.store_name,
            alias_store=alias_store,
            assisted_matcher=assisted_matcher,
        )
        return self.last_result

    def discard(self) -> None:
        if self.stage in TERMINAL:
            raise InvalidTransition(self.stage, "discarded")
        self.stage = "discarded"

    def mark_submitted(self, purchase_id: str) -> None:
        self.require_stage("finish submission", "submit")
        self.purchase_id = purchase_id
        self.stage = "submitted"

    # ============================================
    # Scanning
    # ============================================

    def find_item(self, barcode: str) -> Optional[ScannedItem]:
        return next((i for i in self.items if i.barcode == barcode), None)

    def get_item(self, barcode: str) -> ScannedItem:
        item = self.find_item(barcode)
        if item is None:
            raise ReceivingValidationError(f"No scanned item with barcode {barcode}")
        return item

    async def scan(self, barcode: str, resolver: CatalogResolver) -> tuple[ScannedItem, Optional[LookupResult]]:
        """
        Record one scan.

        A barcode already in the session bumps its quantity without another
        lookup; a new one is resolved through the catalog.
        """
        self.require_stage("scan items", "scan")
        barcode = barcode.strip()

        existing = self.find_item(barcode)
        if existing is not None:
            existing.quantity += 1
            return existing, None

        lookup = await resolver.resolve(barcode)
        return self.add_item(lookup), lookup

    def add_item(self, lookup: LookupResult) -> ScannedItem:
        self.require_stage("scan items", "scan")
        draft = lookup.product
        if self.find_item(draft.barcode) is not None:
            raise ReceivingValidationError(f"Barcode {draft.barcode} is already in this session")

        item = ScannedItem(
            barcode=draft.barcode,
            product_id=lookup.product_id,
            name=draft.name,
            brand=draft.brand,
            category=draft.category,
            image_url=draft.image_url,
            is_new=not lookup.found,
            source=lookup.source,
        )
        self.items.append(item)
        return item

    def set_quantity(self, barcode: str, quantity: int) -> Optional[ScannedItem]:
        """Set an item's quantity; zero or less removes it."""
        self.require_stage("change quantities", "scan", "reconcile")
        item = self.get_item(barcode)
        if quantity <= 0:
            self.remove_item(barcode)
            return None
        item.quantity = quantity
        self._refresh_result()
        return item

    def set_unit_cost(self, barcode: str, unit_cost) -> ScannedItem:
        """Operator-entered cost. Automatic matching never overwrites it."""
        self.require_stage("edit unit costs", "scan", "reconcile")
        item = self.get_item(barcode)

        if unit_cost is None or unit_cost == "":
            release_match(item, self.lines)
            self._refresh_result()
            return item

        cost = normalize_amount(unit_cost)
        if cost is None or cost < 0:
            raise ReceivingValidationError(f"Invalid unit cost: {unit_cost}")

        item.unit_cost = cost
        item.manually_priced = True
        self._refresh_result()
        return item

    def remove_item(self, barcode: str) -> None:
        self.require_stage("remove items", "scan", "reconcile")
        item = self.get_item(barcode)
        release_match(item, self.lines)
        self.items.remove(item)
        self._refresh_result()

    def edit_details(
        self,
        barcode: str,
        name: Optional[str] = None,
        brand: Optional[str] = None,
        category: Optional[str] = None,
    ) -> ScannedItem:
        """Fill in details for an item that is not in the catalog yet."""
        self.require_stage("edit items", "scan", "reconcile")
        item = self.get_item(barcode)
        if item.product_id:
            raise ReceivingValidationError(f"{barcode} is already in the catalog")

        if name is not None:
            item.name = name.strip()
        if brand is not None:
            item.brand = brand.strip() or None
        if category is not None:
            if category not in ("snack", "beverage", "meal"):
                raise ReceivingValidationError(f"Invalid category: {category}")
            item.category = category
        return item

    def attach_product(self, barcode: str, product: Product) -> ScannedItem:
        """Link a newly saved catalog product to its scanned item."""
        item = self.get_item(barcode)
        item.product_id = product.id
        item.name = product.name
        item.brand = product.brand
        item.category = product.category
        item.image_url = product.image_url
        return item

    # ============================================
    # Receipt
    # ============================================

    async def attach_receipt_image(self, image_url: str, transcriber: Optional[Transcriber] = None) -> int:
        """
        Store the receipt image and, with a transcriber, extract its lines.

        OCR failure is not fatal: the status message is kept and the session
        continues with no extracted lines. Returns the number of lines.
        """
        self.require_stage("attach a receipt", "receipt")
        self.receipt_image_url = image_url

        if transcriber is None:
            return len(self.lines)

        try:
            text = await transcriber(image_url)
        except Exception as e:
            logger.warning(f"Receipt OCR failed for session {self.id}: {e}")
            self._replace_lines([])
            self.ocr_status = "Could not read the receipt. Enter prices manually."
            return 0

        return self.attach_receipt_text(text)

    def attach_receipt_text(self, text: str) -> int:
        self.require_stage("attach a receipt", "receipt")
        extraction = extract_line_items(text)
        self._replace_lines(extraction.lines)
        self.detected_total = extraction.detected_total
        if self.declared_total is None and extraction.detected_total is not None:
            self.declared_total = extraction.detected_total

        if extraction.lines:
            self.ocr_status = f"Found {len(extraction.lines)} items on the receipt"
        else:
            self.ocr_status = "No items found on the receipt. Enter prices manually."
        return len(extraction.lines)

    def set_declared_total(self, total) -> None:
        self.require_stage("set the receipt total", "receipt", "reconcile", "submit")
        amount = normalize_amount(total)
        if total not in (None, "") and (amount is None or amount < 0):
            raise ReceivingValidationError(f"Invalid receipt total: {total}")
        self.declared_total = amount

    def _replace_lines(self, lines: list[OCRLineItem]) -> None:
        # Pairings point at line indexes of the previous extraction
        for item in self.items:
            if item.matched_line_index is not None:
                release_match(item, self.lines)
        self.lines = lines

    # ============================================
    # Reconcile
    # ============================================

    def pair(self, barcode: str, line_index: int) -> LineMatch:
        self.require_stage("pair items", "reconcile")
        match = force_match(self.items, self.lines, barcode, line_index)
        self._refresh_result(match)
        return match

    def unpair(self, barcode: str) -> ScannedItem:
        self.require_stage("unpair items", "reconcile")
        item = self.get_item(barcode)
        release_match(item, self.lines)
        self._refresh_result()
        return item

    def _refresh_result(self, match: Optional[LineMatch] = None) -> None:
        """Bring the last matching result in line with manual changes."""
        if self.last_result is None:
            return

        paired = {(i.barcode, i.matched_line_index) for i in self.items if i.matched_line_index is not None}
        kept = [m for m in self.last_result.matched if (m.barcode, m.line_index) in paired]
        if match is not None:
            kept = [m for m in kept if m.barcode != match.barcode] + [match]
        self.last_result.matched = kept

        collect_leftovers(self.last_result, self.items, self.lines)

    async def remember_match(self, barcode: str, alias_store: AliasStore) -> Alias:
        """Save an item's current pairing as an alias for this store."""
        self.require_stage("remember matches", "reconcile")
        item = self.get_item(barcode)
        if not item.matched_text:
            raise ReceivingValidationError(f"{barcode} is not paired with a receipt line")
        if not item.product_id:
            raise ReceivingValidationError(f"Save {barcode} to the catalog before remembering its match")
        return await alias_store.remember(self.store_name, item.matched_text, item.product_id)

    def variance(self) -> VarianceResult:
        return check_variance(self.declared_total, self.items)

    # ============================================
    # Views
    # ============================================

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "stage": self.stage,
            "purchased_by": self.purchased_by,
            "store_name": self.store_name,
            "purchase_date": self.purchase_date.isoformat() if self.purchase_date else None,
            "items": [i.model_dump(mode="json") for i in self.items],
            "lines": [line.model_dump(mode="json") for line in self.lines],
            "receipt_image_url": self.receipt_image_url,
            "declared_total": str(self.declared_total) if self.declared_total is not None else None,
            "detected_total": str(self.detected_total) if self.detected_total is not None else None,
            "ocr_status": self.ocr_status,
            "allowed_stages": sorted(TRANSITIONS.get(self.stage, set())),
            "reconciliation": self.last_result.to_dict() if self.last_result else None,
            "variance": self.variance().model_dump(mode="json"),
            "purchase_id": self.purchase_id,
        }

    def require_stage(self, action: str, *stages: str) -> None:
        if self.stage not in stages:
            raise ActionNotAllowed(action, self.stage)


class SessionRegistry:
    """Open sessions for this process. Nothing here is persisted."""

    def __init__(self):
        self._sessions: dict[str, ReceivingSession] = {}

    def create(
        self,
        purchased_by: str,
        store_name: Optional[str] = None,
        purchase_date: Optional[date] = None,
    ) -> ReceivingSession:
        if not purchased_by or not purchased_by.strip():
            raise ReceivingValidationError("purchased_by is required")
        session = ReceivingSession(purchased_by.strip(), store_name, purchase_date)
        self._sessions[session.id] = session
        logger.info(f"Started receiving session {session.id} for {store_name or 'unknown store'}")
        return session

    def get(self, session_id: str) -> ReceivingSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    def close(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    def discard(self, session_id: str) -> None:
        session = self.get(session_id)
        session.discard()
        self.close(session_id)

    def __len__(self) -> int:
        return len(self._sessions)
