# app/integrations/claude.py

"""
Claude AI integration for receipt reading and assisted matching.

Uses Anthropic's Claude API to:
1. Transcribe a receipt photo into plain OCR-style text
2. Pair receipt lines the deterministic phases could not match with
   scanned products
"""

import base64
import json
import logging

import httpx
from anthropic import AsyncAnthropic

from app.config import get_settings
from app.core.errors import ExternalServiceError
from app.models import AssistedMatch, OCRLineItem, ScannedItem

settings = get_settings()
logger = logging.getLogger(__name__)

# Initialize client
client = AsyncAnthropic(api_key=settings.anthropic_api_key)

# Model to use
MODEL = settings.anthropic_model

TRANSCRIBE_PROMPT = """You are reading a store receipt photo.

Transcribe the receipt exactly as printed, one receipt line per output line.
Keep item descriptions as printed (abbreviations included) and keep each price
at the end of its line, with any tax-code letter after it (for example
"BLK RIFLE COFFEE    4.98 F"). Include subtotal, tax and total lines.
Do not add commentary, headings or markdown. Output the text only."""


async def transcribe_receipt(image_url: str) -> str:
    """
    Transcribe a receipt image to raw text.

    Tries the image URL directly first; if Claude cannot fetch it, downloads
    the image and sends it inline as base64.
    """
    try:
        return await _transcribe({"type": "url", "url": image_url})
    except Exception as e:
        logger.info(f"URL transcription failed, retrying with inline image: {e}")

    try:
        async with httpx.AsyncClient(timeout=30.0) as http:
            response = await http.get(image_url)
        if response.status_code != 200:
            raise ExternalServiceError("storage", f"Failed to fetch receipt image: {response.status_code}")

        content_type = response.headers.get("content-type", "image/jpeg")
        media_type = content_type if content_type.startswith("image/") else "image/jpeg"

        return await _transcribe({
            "type": "base64",
            "media_type": media_type,
            "data": base64.b64encode(response.content).decode(),
        })
    except ExternalServiceError:
        raise
    except Exception as e:
        raise ExternalServiceError("claude", f"Receipt transcription failed: {e}")


async def _transcribe(source: dict) -> str:
    response = await client.messages.create(
        model=MODEL,
        max_tokens=4000,
        messages=[{
            "role": "user",
            "content": [
                {"type": "image", "source": source},
                {"type": "text", "text": TRANSCRIBE_PROMPT},
            ],
        }],
    )
    return _response_text(response)


async def match_receipt_lines(
    lines: list[OCRLineItem],
    items: list[ScannedItem],
    store_name: str | None,
) -> list[AssistedMatch]:
    """
    Ask Claude to pair leftover receipt lines with leftover scanned items.

    One batched call. ``receipt_index`` in the answer is the position in
    ``lines``; product ids are each item's ``match_key``.
    """
    receipt_block = "\n".join(
        f"{i}. {line.description} | ${line.price:.2f}" for i, line in enumerate(lines)
    )
    product_block = "\n".join(
        f"ID: {item.match_key} | {item.brand or 'N/A'} - {item.name} ({item.category})"
        for item in items
    )

    prompt = f"""You are matching lines from a store receipt to products that were scanned
into inventory from the same purchase.

Store: {store_name or 'Unknown'}

RECEIPT LINES (index. text | price):
{receipt_block}

SCANNED PRODUCTS:
{product_block}

Receipts use heavy abbreviations ("BRE" = "Black Rifle Energy", "MNSTR" = "Monster Energy",
"PJT MNGO" = "Project Mango"). Match each receipt line to at most one product and use
each product at most once.

confidence: "high" = certain, "medium" = likely, "low" = uncertain, "none" = no match.

Respond with JSON only, no markdown:
{{"matches": [{{"receipt_index": 0, "product_id": "...", "confidence": "high", "reasoning": "brief explanation"}}]}}"""

    try:
        response = await client.messages.create(
            model=MODEL,
            max_tokens=2000,
            messages=[{"role": "user", "content": prompt}],
        )
        data = _parse_json(_response_text(response))
    except Exception as e:
        raise ExternalServiceError("claude", f"Assisted matching failed: {e}")

    matches = []
    for raw in data.get("matches", []):
        try:
            matches.append(AssistedMatch(
                receipt_index=int(raw.get("receipt_index")),
                product_id=raw.get("product_id") or None,
                confidence=raw.get("confidence") if raw.get("confidence") in ("high", "medium", "low") else "none",
                reasoning=raw.get("reasoning") or "",
            ))
        except (TypeError, ValueError):
            logger.warning(f"Ignoring malformed assisted match: {raw}")
    return matches


def _response_text(response) -> str:
    for block in response.content:
        text = getattr(block, "text", None)
        if text:
            return text.strip()
    raise ValueError("No text in Claude response")


def _parse_json(text: str) -> dict:
    """Parse a JSON answer, tolerating markdown code fences."""
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
    if text.endswith("```"):
        text = text.rsplit("```", 1)[0]
    return json.loads(text.strip())
