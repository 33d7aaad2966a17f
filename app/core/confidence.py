# app/core/confidence.py

"""
Confidence scoring for scanned item ↔ receipt line matching.

Receipts abbreviate aggressively ("BLK RIFLE CFE"), so scoring is token
overlap with partial credit for abbreviations:
- Equal or substring token (either direction): 1 point
- Shared 3-letter prefix, or abbreviation:     0.5 point
Score = points / number of scanned tokens, in [0, 1].
"""

from app.models import MatchConfidence, OCRLineItem, ScannedItem
from app.core.normalizers import tokenize
from app.config import get_settings

settings = get_settings()

# Thresholds
HIGH_CONFIDENCE = settings.fuzzy_high_threshold      # 0.6
MEDIUM_CONFIDENCE = settings.fuzzy_accept_threshold  # 0.3

SCANNED_TOKEN_MIN = 3  # catalog side: drop "of", "oz"
OCR_TOKEN_MIN = 2      # receipt side keeps short abbreviations
PREFIX_LENGTH = 3


def calculate_confidence(
    scanned_brand: str | None,
    scanned_name: str | None,
    ocr_description: str | None,
) -> float:
    """
    Score how well a receipt description matches a scanned item.

    Returns a float in [0, 1].
    """
    scanned_tokens = tokenize(f"{scanned_brand or ''} {scanned_name or ''}", SCANNED_TOKEN_MIN)
    ocr_tokens = tokenize(ocr_description, OCR_TOKEN_MIN)

    if not scanned_tokens or not ocr_tokens:
        return 0.0

    points = sum(_score_token(token, ocr_tokens) for token in scanned_tokens)
    return points / max(len(scanned_tokens), 1)


def _score_token(token: str, ocr_tokens: list[str]) -> float:
    """Best credit one scanned token earns against the receipt tokens."""
    for ocr in ocr_tokens:
        if ocr == token or ocr in token or token in ocr:
            return 1.0

    for ocr in ocr_tokens:
        if token[:PREFIX_LENGTH] == ocr[:PREFIX_LENGTH] or _is_abbreviation(ocr, token):
            return 0.5

    return 0.0


def _is_abbreviation(short: str, word: str) -> bool:
    """
    True when ``short`` reads as an abbreviation of ``word``.

    Same first letter and the remaining letters appear in order:
    "blk" -> "black", "cfe" -> "coffee", "mnstr" -> "monster".
    """
    if len(short) < 2 or len(short) >= len(word) or short[0] != word[0]:
        return False

    position = 1
    for char in short[1:]:
        position = word.find(char, position)
        if position == -1:
            return False
        position += 1
    return True


def get_confidence_level(score: float) -> MatchConfidence:
    """Convert a numeric score to a fuzzy confidence tier."""
    if score >= HIGH_CONFIDENCE:
        return "fuzzy-high"
    elif score >= MEDIUM_CONFIDENCE:
        return "fuzzy-medium"
    else:
        return "fuzzy-low"


def find_best_line(
    item: ScannedItem,
    lines: list[OCRLineItem],
) -> tuple[OCRLineItem, float] | None:
    """
    Best still-unmatched line for an item, or None below the accept threshold.

    Ties keep the earlier receipt line.
    """
    best: tuple[OCRLineItem, float] | None = None

    for line in lines:
        if line.matched:
            continue
        score = calculate_confidence(item.brand, item.name, line.description)
        if best is None or score > best[1]:
            best = (line, score)

    if best is None or best[1] < MEDIUM_CONFIDENCE:
        return None
    return best
