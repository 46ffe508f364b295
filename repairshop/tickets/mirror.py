from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

from .models import Ticket, ticket_from_document
from .state import TicketStatus

logger = logging.getLogger(__name__)


class TicketMirror:
    """Local copy of the ticket collection, replaced wholesale per snapshot."""

    def __init__(self) -> None:
        self._tickets: dict[str, Ticket] = {}

    def apply_snapshot(self, documents: Iterable[Mapping[str, Any]]) -> None:
        tickets: dict[str, Ticket] = {}
        for document in documents:
            try:
                ticket = ticket_from_document(document)
            except (KeyError, ValueError) as exc:
                logger.warning("Skipping malformed ticket document %r: %s", document.get("id"), exc)
                continue
            tickets[ticket.id] = ticket
        self._tickets = tickets

    @property
    def tickets(self) -> list[Ticket]:
        return list(self._tickets.values())

    def get(self, ticket_id: str) -> Ticket | None:
        return self._tickets.get(ticket_id)

    def with_status(self, status: TicketStatus) -> list[Ticket]:
        return [ticket for ticket in self._tickets.values() if ticket.status == status]

    def __len__(self) -> int:
        return len(self._tickets)
