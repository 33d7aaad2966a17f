# app/routers/aliases.py

"""
Receipt alias management.

Aliases are created from receiving sessions ("remember this match"); these
routes let an operator review and remove them.
"""

from fastapi import APIRouter, Depends, Query
from typing import Optional

from app.core.aliases import AliasStore
from app.core.errors import ReceivingError
from app.database import SupabaseAliasRepository
from app.dependencies import get_alias_repository, get_current_user

router = APIRouter()


@router.get("")
async def list_aliases(
    store_name: Optional[str] = Query(None, description="Only aliases that apply to this store"),
    repository: SupabaseAliasRepository = Depends(get_alias_repository),
    user_id: str = Depends(get_current_user),
):
    store = await AliasStore.load(repository, store_name)
    aliases = store.in_scope() if store_name else store.aliases
    return {
        "aliases": [a.model_dump(mode="json") for a in aliases],
        "count": len(aliases),
    }


@router.delete("/{alias_id}")
async def delete_alias(
    alias_id: str,
    repository: SupabaseAliasRepository = Depends(get_alias_repository),
    user_id: str = Depends(get_current_user),
):
    store = AliasStore(repository)
    if not await store.delete(alias_id):
        raise ReceivingError(f"Alias {alias_id} not found", status_code=404)
    return {"success": True, "deleted": alias_id}
