# app/integrations/openfoodfacts.py

"""
Open Food Facts product lookup by barcode.
"""

import logging
from typing import Optional
import httpx

from app.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

USER_AGENT = "ReceivingAPI/1.0 (inventory receiving)"


async def fetch_product(barcode: str) -> Optional[dict]:
    """
    Fetch a product by barcode.

    Returns the raw payload ({"status": 1, "product": {...}}) or None when the
    service answers with anything but 200. Network errors propagate; the
    catalog resolver treats them as a miss.
    """
    url = f"{settings.openfoodfacts_url}/{barcode}.json"

    async with httpx.AsyncClient(timeout=settings.external_lookup_timeout) as client:
        response = await client.get(url, headers={"User-Agent": USER_AGENT})

    if response.status_code != 200:
        logger.info(f"Open Food Facts returned {response.status_code} for {barcode}")
        return None

    data = response.json()
    if data.get("status") != 1:
        logger.info(f"Open Food Facts has no product for {barcode}")
    return data
