from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel

from repairshop.dependencies.shop import ShopSessionDep
from repairshop.tickets import HistoryLookupError

from .tickets import TicketResponse, ticket_response

router = APIRouter(prefix="/history", tags=["history"])


class ClientHistoryResponse(BaseModel):
    client_name: str | None
    tickets: list[TicketResponse]


@router.get("", response_model=ClientHistoryResponse)
async def search_client_history(
    session: ShopSessionDep,
    client_name: str | None = Query(default=None, alias="client"),
) -> ClientHistoryResponse:
    try:
        tickets = await session.history.search(client_name)
    except HistoryLookupError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
    return ClientHistoryResponse(
        client_name=session.history.term,
        tickets=[ticket_response(ticket, session) for ticket in tickets],
    )
