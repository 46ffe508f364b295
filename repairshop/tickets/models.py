from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Mapping

from repairshop.money import ZERO, to_decimal

from .state import TicketStatus


@dataclass(slots=True, frozen=True)
class Ticket:
    """Repair ticket as stored for the shop.

    ``part_cost`` is the unit cost of the referenced part at creation time and
    never follows later price changes of that part.
    """

    id: str
    client_name: str
    device: str
    problem: str
    status: TicketStatus
    created_at: datetime
    part_id: str | None = None
    part_cost: Decimal = ZERO
    repair_price: Decimal = ZERO


@dataclass(slots=True, frozen=True)
class TicketDraft:
    """Operator input for a new ticket."""

    client_name: str
    device: str
    problem: str
    part_id: str | None = None
    repair_price: Decimal = ZERO


def ticket_from_document(document: Mapping[str, Any]) -> Ticket:
    raw_status = document.get("status")
    return Ticket(
        id=str(document["id"]),
        client_name=str(document.get("client_name") or ""),
        device=str(document.get("device") or ""),
        problem=str(document.get("problem") or ""),
        status=TicketStatus(raw_status) if raw_status else TicketStatus.initial_state(),
        created_at=_ensure_datetime(document.get("created_at")),
        part_id=document.get("part_id") or None,
        part_cost=to_decimal(document.get("part_cost")),
        repair_price=to_decimal(document.get("repair_price")),
    )


def ticket_to_document(
    draft: TicketDraft,
    *,
    status: TicketStatus,
    created_at: datetime,
    part_cost: Decimal,
) -> dict[str, Any]:
    return {
        "client_name": draft.client_name,
        "device": draft.device,
        "problem": draft.problem,
        "part_id": draft.part_id,
        "status": status.value,
        "created_at": created_at.isoformat(),
        "part_cost": str(part_cost),
        "repair_price": str(draft.repair_price),
    }


def _ensure_datetime(value: Any) -> datetime:
    if value is None or value == "":
        return datetime.fromtimestamp(0, tz=timezone.utc)
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed
