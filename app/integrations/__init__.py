# app/integrations/__init__.py

from app.integrations import claude
from app.integrations import openfoodfacts

__all__ = ["claude", "openfoodfacts"]
