# app/routers/__init__.py

from app.routers import health
from app.routers import catalog
from app.routers import receiving
from app.routers import aliases

__all__ = ["health", "catalog", "receiving", "aliases"]
