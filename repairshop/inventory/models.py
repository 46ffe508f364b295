from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Mapping

from repairshop.money import to_decimal


@dataclass(slots=True, frozen=True)
class InventoryItem:
    """Spare part kept in stock by the shop."""

    id: str
    name: str
    stock: int = 0
    unit_cost: Decimal = Decimal("0")


def item_from_document(document: Mapping[str, Any]) -> InventoryItem:
    return InventoryItem(
        id=str(document["id"]),
        name=str(document.get("name") or ""),
        stock=int(document.get("stock") or 0),
        unit_cost=to_decimal(document.get("unit_cost")),
    )


def item_to_document(*, name: str, stock: int, unit_cost: Decimal) -> dict[str, Any]:
    return {"name": name, "stock": stock, "unit_cost": str(unit_cost)}
