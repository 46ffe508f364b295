from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal

from repairshop.gateway import Collection, GatewayError, PersistenceGateway, RecordNotFoundError
from repairshop.money import ZERO, to_decimal

from .models import item_to_document

logger = logging.getLogger(__name__)


class InventoryServiceError(RuntimeError):
    """Base error for inventory operations."""


class InvalidInventoryItemError(InventoryServiceError, ValueError):
    """Raised when operator input does not describe a valid item."""


class InventoryItemNotFoundError(InventoryServiceError):
    """Raised when an item could not be located."""


class InventoryWriteError(InventoryServiceError):
    """Raised when the store rejects an inventory write."""


@dataclass(slots=True)
class InventoryService:
    """Operator actions on inventory items.

    Stock levels are not editable here; they only go down through ticket
    creation.
    """

    gateway: PersistenceGateway

    async def add_item(self, *, name: str, stock: int, unit_cost: Decimal | str | int) -> str:
        name = (name or "").strip()
        if not name:
            raise InvalidInventoryItemError("Item name is required")
        if isinstance(stock, bool) or not isinstance(stock, int) or stock < 0:
            raise InvalidInventoryItemError("Stock must be a non-negative integer")
        try:
            cost = to_decimal(unit_cost)
        except ValueError as exc:
            raise InvalidInventoryItemError(str(exc)) from exc
        if cost < ZERO:
            raise InvalidInventoryItemError("Unit cost cannot be negative")

        try:
            item_id = await self.gateway.create(
                Collection.INVENTORY, item_to_document(name=name, stock=stock, unit_cost=cost)
            )
        except GatewayError as exc:
            logger.error("Failed to add inventory item %r: %s", name, exc)
            raise InventoryWriteError(f"Could not add inventory item: {exc}") from exc
        logger.info("Added inventory item %s (%s) with stock %d", item_id, name, stock)
        return item_id

    async def delete_item(self, item_id: str) -> None:
        try:
            await self.gateway.delete(Collection.INVENTORY, item_id)
        except RecordNotFoundError as exc:
            raise InventoryItemNotFoundError(f"Inventory item {item_id} not found") from exc
        except GatewayError as exc:
            logger.error("Failed to delete inventory item %s: %s", item_id, exc)
            raise InventoryWriteError(f"Could not delete inventory item: {exc}") from exc
        logger.info("Deleted inventory item %s", item_id)

