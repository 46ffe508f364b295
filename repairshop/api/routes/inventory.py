from __future__ import annotations

from decimal import Decimal

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field

from repairshop.dependencies.shop import ShopSessionDep
from repairshop.inventory import (
    InvalidInventoryItemError,
    InventoryItemNotFoundError,
    InventoryWriteError,
)

router = APIRouter(prefix="/inventory", tags=["inventory"])


class InventoryItemCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    stock: int = Field(default=0, ge=0)
    unit_cost: Decimal = Field(default=Decimal("0"), ge=0)


class InventoryItemCreatedResponse(BaseModel):
    id: str


class InventoryItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    stock: int
    unit_cost: Decimal
    low_stock: bool = False


@router.get("", response_model=list[InventoryItemResponse])
async def list_inventory(
    session: ShopSessionDep,
    low_stock_only: bool = Query(default=False, alias="low_stock"),
) -> list[InventoryItemResponse]:
    ledger = session.ledger
    items = ledger.low_stock_items if low_stock_only else ledger.items
    return [
        InventoryItemResponse.model_validate(item).model_copy(update={"low_stock": ledger.is_low_stock(item)})
        for item in items
    ]


@router.post("", response_model=InventoryItemCreatedResponse, status_code=status.HTTP_201_CREATED)
async def add_inventory_item(
    payload: InventoryItemCreateRequest, session: ShopSessionDep
) -> InventoryItemCreatedResponse:
    try:
        item_id = await session.inventory.add_item(
            name=payload.name, stock=payload.stock, unit_cost=payload.unit_cost
        )
    except InvalidInventoryItemError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except InventoryWriteError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return InventoryItemCreatedResponse(id=item_id)


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_inventory_item(item_id: str, session: ShopSessionDep) -> None:
    try:
        await session.inventory.delete_item(item_id)
    except InventoryItemNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except InventoryWriteError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
