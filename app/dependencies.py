# app/dependencies.py

"""
FastAPI dependencies.

Authentication validates Supabase JWTs and yields the operator's user_id;
the rest hand the routers their collaborators, so tests can swap them via
app.dependency_overrides.
"""

from functools import lru_cache

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.core.catalog import CatalogResolver
from app.core.session import SessionRegistry
from app.database import (
    SupabaseAliasRepository,
    SupabaseCatalog,
    SupabaseLedger,
    get_supabase_admin,
)
from app.integrations import openfoodfacts

security = HTTPBearer()


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> str:
    """
    Validate the Supabase JWT and return the user_id.

    This is a sync function -- FastAPI auto-runs it in a threadpool.
    """
    token = credentials.credentials

    try:
        user_response = get_supabase_admin().auth.get_user(token)
    except Exception:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if user_response is None or user_response.user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return user_response.user.id


# ============================================
# Collaborators
# ============================================

def get_catalog() -> SupabaseCatalog:
    return SupabaseCatalog()


def get_resolver(catalog: SupabaseCatalog = Depends(get_catalog)) -> CatalogResolver:
    return CatalogResolver(catalog, openfoodfacts.fetch_product)


def get_alias_repository() -> SupabaseAliasRepository:
    return SupabaseAliasRepository()


def get_ledger() -> SupabaseLedger:
    return SupabaseLedger()


@lru_cache()
def get_session_registry() -> SessionRegistry:
    """One registry per process; sessions are never persisted."""
    return SessionRegistry()
