# app/core/brands.py

"""
Brand normalization.

Cheap string heuristics that keep freshly observed brand strings from
creating near-duplicates of brands already in the catalog
("Black Rifle" vs "Black Rifle Coffee Company").
"""

from typing import Iterable

from app.models import BrandMatch, BrandGroup, Product

# Shared first words shorter than this are too generic to suggest ("The", "Dr.")
SIMILAR_FIRST_TOKEN_MIN = 4
GROUP_FIRST_TOKEN_MIN = 3


def normalize_brand(candidate: str | None, existing_brands: Iterable[str]) -> BrandMatch:
    """
    Match a candidate brand against the existing brand vocabulary.

    First rule that fires wins:
    1. Case-insensitive equality -> exact
    2. Containment either direction -> contains (longest existing brand)
    3. Same first word, longer than 3 characters -> similar (suggestions only)
    4. none
    """
    candidate = (candidate or "").strip()
    brands = _unique([b.strip() for b in existing_brands if b and b.strip()])

    if not candidate:
        return BrandMatch()

    candidate_lower = candidate.lower()

    # ============================================
    # Exact
    # ============================================
    for brand in brands:
        if brand.lower() == candidate_lower:
            return BrandMatch(match=brand, match_type="exact")

    # ============================================
    # Containment (prefer the longer, more complete name)
    # ============================================
    contained = [
        brand for brand in brands
        if brand.lower() in candidate_lower or candidate_lower in brand.lower()
    ]
    if contained:
        contained.sort(key=len, reverse=True)
        return BrandMatch(match=contained[0], match_type="contains", suggestions=contained)

    # ============================================
    # Same first word (needs human confirmation)
    # ============================================
    first_token = candidate_lower.split()[0]
    if len(first_token) >= SIMILAR_FIRST_TOKEN_MIN:
        similar = [b for b in brands if b.lower().split()[0] == first_token]
        if similar:
            return BrandMatch(match_type="similar", suggestions=similar)

    return BrandMatch()


def resolve_brand(candidate: str | None, existing_brands: Iterable[str]) -> tuple[str | None, BrandMatch]:
    """
    Pick the brand to store for a candidate.

    exact/contains matches replace the candidate; anything else keeps it
    and only carries suggestions.
    """
    result = normalize_brand(candidate, existing_brands)
    if result.match_type in ("exact", "contains"):
        return result.match, result
    cleaned = (candidate or "").strip()
    return (cleaned or None), result


def find_similar_brand_groups(products: list[Product]) -> list[BrandGroup]:
    """
    Group catalog brands that look like spellings of the same brand.

    Two brands are grouped when one contains the other or they share a
    first word longer than two characters. The longest brand in a group is
    preselected as canonical. Brands with no near-duplicate are omitted.
    """
    by_brand: dict[str, list[str]] = {}
    for product in products:
        brand = (product.brand or "").strip()
        if brand:
            by_brand.setdefault(brand, []).append(product.id)

    brands = list(by_brand)
    used: set[str] = set()
    groups: list[BrandGroup] = []

    for i, brand in enumerate(brands):
        if brand in used:
            continue

        brand_lower = brand.lower()
        first_word = brand_lower.split()[0]
        members = [brand]

        for other in brands[i + 1:]:
            if other in used:
                continue
            other_lower = other.lower()
            contains = brand_lower in other_lower or other_lower in brand_lower
            same_first = (
                other_lower.split()[0] == first_word
                and len(first_word) >= GROUP_FIRST_TOKEN_MIN
            )
            if contains or same_first:
                members.append(other)
                used.add(other)

        used.add(brand)

        if len(members) > 1:
            product_ids = [pid for member in members for pid in by_brand[member]]
            groups.append(BrandGroup(
                brands=members,
                product_ids=product_ids,
                canonical=max(members, key=len),
            ))

    return groups


def _unique(values: list[str]) -> list[str]:
    seen: set[str] = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result
