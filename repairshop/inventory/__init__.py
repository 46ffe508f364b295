"""Inventory items, the stock ledger and operator inventory actions."""

from .ledger import InventoryLedger
from .models import InventoryItem
from .service import (
    InvalidInventoryItemError,
    InventoryItemNotFoundError,
    InventoryService,
    InventoryServiceError,
    InventoryWriteError,
)

__all__ = [
    "InvalidInventoryItemError",
    "InventoryItem",
    "InventoryItemNotFoundError",
    "InventoryLedger",
    "InventoryService",
    "InventoryServiceError",
    "InventoryWriteError",
]
