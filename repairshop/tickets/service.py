from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable

from opentelemetry import trace

from repairshop.gateway import (
    Collection,
    ConditionFailedError,
    GatewayError,
    PersistenceGateway,
    RecordNotFoundError,
)
from repairshop.inventory.ledger import InventoryLedger
from repairshop.money import ZERO, to_decimal

from .models import TicketDraft, ticket_to_document
from .state import TicketStatus

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class TicketServiceError(RuntimeError):
    """Base error for ticket workflow issues."""


class InvalidTicketDraftError(TicketServiceError, ValueError):
    """Raised when a draft is missing required information."""


class InsufficientStockError(TicketServiceError):
    """Raised when the referenced part is unknown or out of stock."""


class TicketNotFoundError(TicketServiceError):
    """Raised when a ticket could not be located."""


class TicketWriteError(TicketServiceError):
    """Raised when the store fails to apply a ticket or stock write."""


class HistoryLookupError(TicketServiceError):
    """Raised when a client history query fails."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _validate_draft(draft: TicketDraft) -> None:
    missing = [
        name
        for name, value in (
            ("client_name", draft.client_name),
            ("device", draft.device),
            ("problem", draft.problem),
        )
        if not (value or "").strip()
    ]
    if missing:
        raise InvalidTicketDraftError(f"Missing required fields: {', '.join(missing)}")
    try:
        price = to_decimal(draft.repair_price)
    except ValueError as exc:
        raise InvalidTicketDraftError(str(exc)) from exc
    if price < ZERO:
        raise InvalidTicketDraftError("Repair price cannot be negative")


@dataclass(slots=True)
class TicketWorkflow:
    """Create, re-status and delete repair tickets.

    Creating a ticket that uses a part takes one unit of that part out of
    stock before the ticket is written. If the ticket write then fails the
    unit stays taken; nothing is rolled back.
    """

    gateway: PersistenceGateway
    ledger: InventoryLedger
    clock: Callable[[], datetime] = field(default=_utcnow)

    async def create_ticket(self, draft: TicketDraft) -> str:
        _validate_draft(draft)

        with tracer.start_as_current_span("tickets.create") as span:
            part_cost = ZERO
            if draft.part_id:
                span.set_attribute("repairshop.part_id", draft.part_id)
                part_cost = await self._take_part(draft.part_id)

            document = ticket_to_document(
                draft,
                status=TicketStatus.initial_state(),
                created_at=self.clock(),
                part_cost=part_cost,
            )
            try:
                ticket_id = await self.gateway.create(Collection.TICKETS, document)
            except GatewayError as exc:
                if draft.part_id:
                    logger.error(
                        "Ticket for %s was not created but part %s was already taken from stock: %s",
                        draft.client_name,
                        draft.part_id,
                        exc,
                    )
                else:
                    logger.error("Ticket for %s was not created: %s", draft.client_name, exc)
                raise TicketWriteError(f"Could not create ticket: {exc}") from exc

            span.set_attribute("repairshop.ticket_id", ticket_id)
        logger.info("Created ticket %s for %s", ticket_id, draft.client_name)
        return ticket_id

    async def _take_part(self, part_id: str) -> Decimal:
        item = self.ledger.find_by_id(part_id)
        if item is None or item.stock <= 0:
            logger.warning("Refusing ticket: part %s is out of stock", part_id)
            raise InsufficientStockError(f"Part {part_id} is out of stock")

        try:
            remaining = await self.gateway.decrement(Collection.INVENTORY, item.id, "stock", 1)
        except (ConditionFailedError, RecordNotFoundError) as exc:
            # The local mirror was stale; the store had nothing left to take.
            logger.warning("Refusing ticket: part %s ran out before it could be taken: %s", part_id, exc)
            raise InsufficientStockError(f"Part {part_id} is out of stock") from exc
        except GatewayError as exc:
            logger.error("Failed to take part %s from stock: %s", part_id, exc)
            raise TicketWriteError(f"Could not update stock: {exc}") from exc

        logger.debug("Took one %s from stock, %d left", item.name, remaining)
        return item.unit_cost

    async def update_status(self, ticket_id: str, new_status: TicketStatus | str) -> TicketStatus:
        status = TicketStatus(new_status)
        with tracer.start_as_current_span("tickets.update_status"):
            try:
                await self.gateway.update(Collection.TICKETS, ticket_id, {"status": status.value})
            except RecordNotFoundError as exc:
                raise TicketNotFoundError(f"Ticket {ticket_id} not found") from exc
            except GatewayError as exc:
                logger.error("Failed to update status of ticket %s: %s", ticket_id, exc)
                raise TicketWriteError(f"Could not update ticket status: {exc}") from exc
        logger.info("Ticket %s is now %s", ticket_id, status.value)
        return status

    async def delete_ticket(self, ticket_id: str) -> None:
        with tracer.start_as_current_span("tickets.delete"):
            try:
                await self.gateway.delete(Collection.TICKETS, ticket_id)
            except RecordNotFoundError as exc:
                raise TicketNotFoundError(f"Ticket {ticket_id} not found") from exc
            except GatewayError as exc:
                logger.error("Failed to delete ticket %s: %s", ticket_id, exc)
                raise TicketWriteError(f"Could not delete ticket: {exc}") from exc
        logger.info("Deleted ticket %s", ticket_id)
