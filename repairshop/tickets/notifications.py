from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import quote

from repairshop.inventory.ledger import InventoryLedger
from repairshop.inventory.models import InventoryItem

from .models import Ticket

# Same unreserved set as JavaScript's encodeURIComponent.
_URI_SAFE = "-_.!~*'()"


@dataclass(slots=True, frozen=True)
class StatusNotification:
    message: str
    url: str


def compose_status_message(ticket: Ticket, part: InventoryItem | None = None) -> str:
    part_suffix = f" (Part: {part.name})" if part is not None else ""
    return (
        f"Hello {ticket.client_name}, your device {ticket.device} status: "
        f"{ticket.status.label}{part_suffix}. Ticket ID: {ticket.id}"
    )


@dataclass(slots=True, frozen=True)
class StatusNotifier:
    """Build a click-to-chat link telling a client about their repair.

    The link is only composed here; sending it is up to the operator and
    nothing confirms delivery.
    """

    phone_number: str
    base_url: str = "https://wa.me"

    def compose(self, ticket: Ticket, ledger: InventoryLedger) -> StatusNotification:
        part = ledger.find_by_id(ticket.part_id) if ticket.part_id else None
        message = compose_status_message(ticket, part)
        url = f"{self.base_url.rstrip('/')}/{self.phone_number}?text={quote(message, safe=_URI_SAFE)}"
        return StatusNotification(message=message, url=url)
