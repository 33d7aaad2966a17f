# app/routers/receiving.py

"""
Receiving session routes.

One session per purchase being received:
scan items -> attach receipt -> reconcile prices -> submit to the ledger.
"""

from datetime import date
from decimal import Decimal
from fastapi import APIRouter, Depends, File, UploadFile
from pydantic import BaseModel
from typing import Optional

from app.config import get_settings
from app.core.aliases import AliasStore
from app.core.catalog import CatalogResolver
from app.core.errors import ReceivingValidationError
from app.core.session import ReceivingSession, SessionRegistry
from app.core.submission import submit
from app.database import SupabaseAliasRepository, SupabaseLedger, upload_receipt
from app.dependencies import (
    get_alias_repository,
    get_current_user,
    get_ledger,
    get_resolver,
    get_session_registry,
)
from app.integrations import claude
from app.models import Category, ProductDraft

settings = get_settings()
router = APIRouter()


# ============================================
# Request Models
# ============================================

class SessionRequest(BaseModel):
    store_name: Optional[str] = None
    purchase_date: Optional[date] = None


class ScanRequest(BaseModel):
    barcode: str


class ItemUpdate(BaseModel):
    quantity: Optional[int] = None
    unit_cost: Optional[Decimal | str] = None
    clear_unit_cost: bool = False
    name: Optional[str] = None
    brand: Optional[str] = None
    category: Optional[Category] = None


class ProductDetails(BaseModel):
    name: Optional[str] = None
    brand: Optional[str] = None
    category: Optional[Category] = None


class ReceiptTextRequest(BaseModel):
    text: str
    declared_total: Optional[Decimal] = None


class TotalRequest(BaseModel):
    declared_total: Optional[Decimal] = None


class StageRequest(BaseModel):
    target: str


class PairRequest(BaseModel):
    barcode: str
    line_index: int
    remember: bool = False


class RememberRequest(BaseModel):
    barcode: str


def _load_session(session_id: str, registry: SessionRegistry) -> ReceivingSession:
    return registry.get(session_id)


async def _alias_store(session: ReceivingSession, repository: SupabaseAliasRepository) -> AliasStore:
    return await AliasStore.load(repository, session.store_name)


# ============================================
# Sessions
# ============================================

@router.post("/sessions")
async def start_session(
    request: SessionRequest,
    registry: SessionRegistry = Depends(get_session_registry),
    user_id: str = Depends(get_current_user),
):
    session = registry.create(user_id, request.store_name, request.purchase_date)
    return session.to_dict()


@router.get("/sessions/{session_id}")
async def get_session(
    session_id: str,
    registry: SessionRegistry = Depends(get_session_registry),
    user_id: str = Depends(get_current_user),
):
    return _load_session(session_id, registry).to_dict()


@router.delete("/sessions/{session_id}")
async def discard_session(
    session_id: str,
    registry: SessionRegistry = Depends(get_session_registry),
    user_id: str = Depends(get_current_user),
):
    registry.discard(session_id)
    return {"success": True, "discarded": session_id}


@router.post("/sessions/{session_id}/stage")
async def change_stage(
    session_id: str,
    request: StageRequest,
    registry: SessionRegistry = Depends(get_session_registry),
    repository: SupabaseAliasRepository = Depends(get_alias_repository),
    user_id: str = Depends(get_current_user),
):
    """
    Move the session to another stage.

    receipt -> reconcile runs matching: aliases, fuzzy scoring, then the
    assisted matcher when it is enabled.
    """
    session = _load_session(session_id, registry)
    alias_store = None
    if session.stage == "receipt" and request.target == "reconcile":
        alias_store = await _alias_store(session, repository)

    await session.advance(request.target, alias_store=alias_store)
    return session.to_dict()


@router.post("/sessions/{session_id}/rematch")
async def rerun_matching(
    session_id: str,
    registry: SessionRegistry = Depends(get_session_registry),
    repository: SupabaseAliasRepository = Depends(get_alias_repository),
    user_id: str = Depends(get_current_user),
):
    """Run matching again; manual prices are kept."""
    session = _load_session(session_id, registry)
    await session.run_matching(alias_store=await _alias_store(session, repository))
    return session.to_dict()


# ============================================
# Scanning
# ============================================

@router.post("/sessions/{session_id}/scan")
async def scan_item(
    session_id: str,
    request: ScanRequest,
    registry: SessionRegistry = Depends(get_session_registry),
    resolver: CatalogResolver = Depends(get_resolver),
    user_id: str = Depends(get_current_user),
):
    session = _load_session(session_id, registry)
    item, lookup = await session.scan(request.barcode, resolver)
    return {
        "item": item.model_dump(mode="json"),
        "lookup": lookup.model_dump(mode="json") if lookup else None,
        "rescanned": lookup is None,
        "item_count": len(session.items),
    }


@router.patch("/sessions/{session_id}/items/{barcode}")
async def update_item(
    session_id: str,
    barcode: str,
    request: ItemUpdate,
    registry: SessionRegistry = Depends(get_session_registry),
    user_id: str = Depends(get_current_user),
):
    session = _load_session(session_id, registry)

    if request.name is not None or request.brand is not None or request.category is not None:
        session.edit_details(barcode, request.name, request.brand, request.category)
    if request.clear_unit_cost:
        session.set_unit_cost(barcode, None)
    elif request.unit_cost is not None:
        session.set_unit_cost(barcode, request.unit_cost)
    if request.quantity is not None:
        if session.set_quantity(barcode, request.quantity) is None:
            return {"removed": barcode, "session": session.to_dict()}

    return {"item": session.get_item(barcode).model_dump(mode="json"), "session": session.to_dict()}


@router.delete("/sessions/{session_id}/items/{barcode}")
async def remove_item(
    session_id: str,
    barcode: str,
    registry: SessionRegistry = Depends(get_session_registry),
    user_id: str = Depends(get_current_user),
):
    session = _load_session(session_id, registry)
    session.remove_item(barcode)
    return session.to_dict()


@router.post("/sessions/{session_id}/items/{barcode}/product")
async def save_product(
    session_id: str,
    barcode: str,
    request: ProductDetails,
    registry: SessionRegistry = Depends(get_session_registry),
    resolver: CatalogResolver = Depends(get_resolver),
    user_id: str = Depends(get_current_user),
):
    """Save a scanned item that is not in the catalog as a new product."""
    session = _load_session(session_id, registry)
    item = session.edit_details(barcode, request.name, request.brand, request.category)

    product = await resolver.create_product(ProductDraft(
        barcode=item.barcode,
        name=item.name,
        brand=item.brand,
        category=item.category,
        default_price=item.unit_cost,
        image_url=item.image_url,
    ))
    item = session.attach_product(barcode, product)
    return {"item": item.model_dump(mode="json"), "product": product.model_dump(mode="json")}


# ============================================
# Receipt
# ============================================

@router.post("/sessions/{session_id}/receipt/text")
async def attach_receipt_text(
    session_id: str,
    request: ReceiptTextRequest,
    registry: SessionRegistry = Depends(get_session_registry),
    user_id: str = Depends(get_current_user),
):
    """Attach receipt text that was already transcribed."""
    session = _load_session(session_id, registry)
    if request.declared_total is not None:
        session.set_declared_total(request.declared_total)
    session.attach_receipt_text(request.text)
    return session.to_dict()


@router.post("/sessions/{session_id}/receipt/image")
async def attach_receipt_image(
    session_id: str,
    file: UploadFile = File(...),
    registry: SessionRegistry = Depends(get_session_registry),
    user_id: str = Depends(get_current_user),
):
    """Upload a receipt photo and read its lines with Claude."""
    session = _load_session(session_id, registry)
    session.require_stage("attach a receipt", "receipt")

    content = await file.read()
    if not content:
        raise ReceivingValidationError("Receipt image is empty")

    url = await upload_receipt(content, file.filename or "receipt.jpg", file.content_type or "image/jpeg")
    transcriber = claude.transcribe_receipt if settings.enable_receipt_ocr else None
    await session.attach_receipt_image(url, transcriber)
    return session.to_dict()


@router.put("/sessions/{session_id}/total")
async def set_total(
    session_id: str,
    request: TotalRequest,
    registry: SessionRegistry = Depends(get_session_registry),
    user_id: str = Depends(get_current_user),
):
    session = _load_session(session_id, registry)
    session.set_declared_total(request.declared_total)
    declared = str(session.declared_total) if session.declared_total is not None else None
    return {"declared_total": declared, "variance": session.variance().model_dump(mode="json")}


# ============================================
# Reconcile
# ============================================

@router.post("/sessions/{session_id}/pairs")
async def pair_item(
    session_id: str,
    request: PairRequest,
    registry: SessionRegistry = Depends(get_session_registry),
    repository: SupabaseAliasRepository = Depends(get_alias_repository),
    user_id: str = Depends(get_current_user),
):
    """Pair an unpriced item with a receipt line by hand."""
    session = _load_session(session_id, registry)
    if request.remember and not session.get_item(request.barcode).product_id:
        raise ReceivingValidationError(f"Save {request.barcode} to the catalog before remembering its match")
    match = session.pair(request.barcode, request.line_index)

    alias = None
    if request.remember:
        alias = await session.remember_match(request.barcode, AliasStore(repository, session.store_name))

    return {
        "match": match.model_dump(mode="json"),
        "alias": alias.model_dump(mode="json") if alias else None,
        "session": session.to_dict(),
    }


@router.delete("/sessions/{session_id}/pairs/{barcode}")
async def unpair_item(
    session_id: str,
    barcode: str,
    registry: SessionRegistry = Depends(get_session_registry),
    user_id: str = Depends(get_current_user),
):
    session = _load_session(session_id, registry)
    session.unpair(barcode)
    return session.to_dict()


@router.post("/sessions/{session_id}/aliases")
async def remember_match(
    session_id: str,
    request: RememberRequest,
    registry: SessionRegistry = Depends(get_session_registry),
    repository: SupabaseAliasRepository = Depends(get_alias_repository),
    user_id: str = Depends(get_current_user),
):
    """Remember this match: future receipts from the store match automatically."""
    session = _load_session(session_id, registry)
    alias = await session.remember_match(request.barcode, AliasStore(repository, session.store_name))
    return {"success": True, "alias": alias.model_dump(mode="json")}


@router.get("/sessions/{session_id}/variance")
async def get_variance(
    session_id: str,
    registry: SessionRegistry = Depends(get_session_registry),
    user_id: str = Depends(get_current_user),
):
    return _load_session(session_id, registry).variance().model_dump(mode="json")


# ============================================
# Submit
# ============================================

@router.post("/sessions/{session_id}/submit")
async def submit_session(
    session_id: str,
    registry: SessionRegistry = Depends(get_session_registry),
    resolver: CatalogResolver = Depends(get_resolver),
    ledger: SupabaseLedger = Depends(get_ledger),
    user_id: str = Depends(get_current_user),
):
    """
    Write the session to the purchase ledger.

    The session must be in the submit stage. On success it is closed; on a
    partial write it stays open so the operator can see what was written.
    """
    session = _load_session(session_id, registry)
    result = await submit(session, resolver, ledger)
    registry.close(session_id)
    return {"success": True, **result.model_dump(mode="json")}
