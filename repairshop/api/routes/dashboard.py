from __future__ import annotations

from decimal import Decimal

from fastapi import APIRouter
from pydantic import BaseModel, ConfigDict

from repairshop.dependencies.shop import ShopSessionDep

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


class DashboardResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total_tickets: int
    pending_tickets: int
    progress_tickets: int
    finished_tickets: int
    total_parts_cost: Decimal
    total_revenue: Decimal


@router.get("", response_model=DashboardResponse)
async def get_dashboard(session: ShopSessionDep) -> DashboardResponse:
    return DashboardResponse.model_validate(session.stats())
