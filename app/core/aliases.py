# app/core/aliases.py

"""
Learned receipt aliases.

An alias maps receipt text, optionally scoped to one store, to a catalog
product. Aliases are created when an operator confirms a fuzzy or
assisted match, and they are checked before any fuzzy scoring on later
receipts: they are free, deterministic, and encode a human decision.

Lookup is first-match by containment in load order. Nothing is
de-duplicated, so a broader alias loaded earlier shadows a narrower one.
"""

import logging
from typing import Optional, Protocol

from app.models import Alias, AliasCreate, OCRLineItem, ScannedItem
from app.core.normalizers import fold_text, normalize_receipt_text

logger = logging.getLogger(__name__)


class AliasRepository(Protocol):
    """Persistence for aliases (see app.database.SupabaseAliasRepository)."""

    async def load_all(self) -> list[Alias]: ...

    async def append(self, alias: AliasCreate) -> Alias: ...

    async def delete(self, alias_id: str) -> bool: ...


class AliasStore:
    """Aliases in scope for one store, backed by a repository."""

    def __init__(self, repository: AliasRepository, store_name: Optional[str] = None):
        self.repository = repository
        self.store_name = store_name
        self.aliases: list[Alias] = []

    @classmethod
    async def load(cls, repository: AliasRepository, store_name: Optional[str] = None) -> "AliasStore":
        store = cls(repository, store_name)
        await store.refresh()
        return store

    async def refresh(self) -> None:
        self.aliases = await self.repository.load_all()
        logger.info(f"Loaded {len(self.aliases)} receipt aliases")

    def in_scope(self, store_name: Optional[str] = None) -> list[Alias]:
        """Unscoped aliases plus those for the given store, in load order."""
        store = fold_text(store_name if store_name is not None else self.store_name)
        return [
            a for a in self.aliases
            if a.store_name is None or (store and fold_text(a.store_name) == store)
        ]

    def lookup(self, store_name: Optional[str], ocr_text: str) -> Optional[str]:
        """Product id of the first alias containing or contained in the text."""
        text = fold_text(ocr_text)
        if not text:
            return None

        for alias in self.in_scope(store_name):
            if _contains_either(fold_text(alias.receipt_text), text):
                return alias.product_id
        return None

    def match_lines(
        self,
        items: list[ScannedItem],
        lines: list[OCRLineItem],
    ) -> list[tuple[ScannedItem, OCRLineItem]]:
        """
        Pair unmatched lines with unmatched items through aliases.

        For each line, aliases are scanned in order and the first one that
        matches the text and still has an unmatched item for its product
        wins. Marks nothing; the caller applies the pairs.
        """
        pairs: list[tuple[ScannedItem, OCRLineItem]] = []
        taken: set[str] = set()
        scoped = self.in_scope()

        for line in lines:
            if line.matched:
                continue
            text = fold_text(line.description)

            for alias in scoped:
                if not _contains_either(fold_text(alias.receipt_text), text):
                    continue
                item = next(
                    (
                        i for i in items
                        if i.product_id == alias.product_id
                        and not i.is_matched
                        and i.barcode not in taken
                    ),
                    None,
                )
                if item is not None:
                    pairs.append((item, line))
                    taken.add(item.barcode)
                    break

        return pairs

    async def remember(self, store_name: Optional[str], ocr_text: str, product_id: str) -> Alias:
        """Persist a new alias and make it visible to this store immediately."""
        alias = await self.repository.append(AliasCreate(
            store_name=store_name or None,
            receipt_text=normalize_receipt_text(ocr_text),
            product_id=product_id,
        ))
        self.aliases.append(alias)
        logger.info(f"Remembered alias {alias.receipt_text!r} -> {product_id} ({store_name or 'all stores'})")
        return alias

    async def delete(self, alias_id: str) -> bool:
        deleted = await self.repository.delete(alias_id)
        if deleted:
            self.aliases = [a for a in self.aliases if a.id != alias_id]
        return deleted


def _contains_either(alias_text: str, text: str) -> bool:
    if not alias_text or not text:
        return False
    return alias_text in text or text in alias_text
