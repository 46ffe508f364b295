from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from .models import InventoryItem, item_from_document

logger = logging.getLogger(__name__)


class InventoryLedger:
    """Read-only mirror of the inventory collection.

    The ledger only changes when a full snapshot arrives from the store, so a
    write is visible here once the store has announced it.
    """

    def __init__(self, *, low_stock_threshold: int = 5) -> None:
        self.low_stock_threshold = low_stock_threshold
        self._items: dict[str, InventoryItem] = {}

    def apply_snapshot(self, documents: Iterable[Mapping[str, Any]]) -> None:
        items: dict[str, InventoryItem] = {}
        for document in documents:
            try:
                item = item_from_document(document)
            except (KeyError, ValueError) as exc:
                logger.warning("Skipping malformed inventory document %r: %s", document.get("id"), exc)
                continue
            items[item.id] = item
        self._items = items

    @property
    def items(self) -> list[InventoryItem]:
        return list(self._items.values())

    def find_by_id(self, item_id: str) -> InventoryItem | None:
        return self._items.get(item_id)

    def has_stock(self, item_id: str) -> bool:
        item = self._items.get(item_id)
        return item is not None and item.stock > 0

    def is_low_stock(self, item: InventoryItem) -> bool:
        """True when the item is below the reorder threshold."""
        return item.stock < self.low_stock_threshold

    @property
    def low_stock_items(self) -> list[InventoryItem]:
        return [item for item in self._items.values() if self.is_low_stock(item)]

    def __len__(self) -> int:
        return len(self._items)
