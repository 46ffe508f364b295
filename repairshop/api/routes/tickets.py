from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field

from repairshop.dependencies.shop import ShopSessionDep
from repairshop.gateway import GatewayTimeoutError
from repairshop.session import ShopSession
from repairshop.tickets import (
    InsufficientStockError,
    InvalidTicketDraftError,
    Ticket,
    TicketDraft,
    TicketNotFoundError,
    TicketStatus,
    TicketWriteError,
)

router = APIRouter(prefix="/tickets", tags=["tickets"])


class TicketCreateRequest(BaseModel):
    client_name: str = Field(..., min_length=1, max_length=255)
    device: str = Field(..., min_length=1, max_length=255)
    problem: str = Field(..., min_length=1)
    part_id: str | None = Field(default=None)
    repair_price: Decimal = Field(default=Decimal("0"), ge=0)


class TicketCreatedResponse(BaseModel):
    id: str


class TicketStatusChangeRequest(BaseModel):
    status: TicketStatus


class TicketStatusResponse(BaseModel):
    id: str
    status: TicketStatus


class TicketResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    client_name: str
    device: str
    problem: str
    part_id: str | None
    part_name: str | None = None
    status: TicketStatus
    created_at: datetime
    part_cost: Decimal
    repair_price: Decimal


class NotificationResponse(BaseModel):
    message: str
    url: str


def ticket_response(ticket: Ticket, session: ShopSession) -> TicketResponse:
    response = TicketResponse.model_validate(ticket)
    if ticket.part_id:
        part = session.ledger.find_by_id(ticket.part_id)
        response.part_name = part.name if part is not None else None
    return response


def _write_failure(exc: Exception) -> HTTPException:
    cause = exc.__cause__
    if isinstance(cause, GatewayTimeoutError):
        return HTTPException(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail=str(exc))
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))


@router.post("", response_model=TicketCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_ticket(payload: TicketCreateRequest, session: ShopSessionDep) -> TicketCreatedResponse:
    draft = TicketDraft(
        client_name=payload.client_name,
        device=payload.device,
        problem=payload.problem,
        part_id=payload.part_id or None,
        repair_price=payload.repair_price,
    )
    try:
        ticket_id = await session.workflow.create_ticket(draft)
    except InvalidTicketDraftError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except InsufficientStockError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except TicketWriteError as exc:
        raise _write_failure(exc) from exc
    return TicketCreatedResponse(id=ticket_id)


@router.get("", response_model=list[TicketResponse])
async def list_tickets(
    session: ShopSessionDep,
    status_filter: TicketStatus | None = Query(default=None, alias="status"),
) -> list[TicketResponse]:
    if status_filter is None:
        tickets = session.tickets.tickets
    else:
        tickets = session.tickets.with_status(status_filter)
    return [ticket_response(ticket, session) for ticket in tickets]


@router.get("/{ticket_id}", response_model=TicketResponse)
async def get_ticket(ticket_id: str, session: ShopSessionDep) -> TicketResponse:
    ticket = session.tickets.get(ticket_id)
    if ticket is None:
        raise HTTPException(status_code=404, detail=f"Ticket {ticket_id} not found")
    return ticket_response(ticket, session)


@router.post("/{ticket_id}/status", response_model=TicketStatusResponse)
async def change_ticket_status(
    ticket_id: str,
    payload: TicketStatusChangeRequest,
    session: ShopSessionDep,
) -> TicketStatusResponse:
    try:
        new_status = await session.workflow.update_status(ticket_id, payload.status)
    except TicketNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except TicketWriteError as exc:
        raise _write_failure(exc) from exc
    return TicketStatusResponse(id=ticket_id, status=new_status)


@router.delete("/{ticket_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_ticket(ticket_id: str, session: ShopSessionDep) -> None:
    try:
        await session.workflow.delete_ticket(ticket_id)
    except TicketNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except TicketWriteError as exc:
        raise _write_failure(exc) from exc


@router.get("/{ticket_id}/notification", response_model=NotificationResponse)
async def get_ticket_notification(ticket_id: str, session: ShopSessionDep) -> NotificationResponse:
    ticket = session.tickets.get(ticket_id)
    if ticket is None:
        raise HTTPException(status_code=404, detail=f"Ticket {ticket_id} not found")
    notification = session.notifier.compose(ticket, session.ledger)
    return NotificationResponse(message=notification.message, url=notification.url)
