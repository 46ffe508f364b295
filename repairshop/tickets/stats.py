from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from repairshop.money import ZERO

from .models import Ticket
from .state import TicketStatus


@dataclass(slots=True, frozen=True)
class DashboardStats:
    """Counters and totals shown on the shop dashboard."""

    total_tickets: int = 0
    pending_tickets: int = 0
    progress_tickets: int = 0
    finished_tickets: int = 0
    total_parts_cost: Decimal = ZERO
    total_revenue: Decimal = ZERO


def compute_dashboard_stats(tickets: Iterable[Ticket]) -> DashboardStats:
    """Summarise the given tickets. Nothing is cached between calls."""

    total = pending = in_progress = finished = 0
    parts_cost = ZERO
    revenue = ZERO
    for ticket in tickets:
        total += 1
        if ticket.status == TicketStatus.PENDING:
            pending += 1
        elif ticket.status == TicketStatus.IN_PROGRESS:
            in_progress += 1
        elif ticket.status.is_finished:
            finished += 1
        parts_cost += ticket.part_cost
        revenue += ticket.repair_price

    return DashboardStats(
        total_tickets=total,
        pending_tickets=pending,
        progress_tickets=in_progress,
        finished_tickets=finished,
        total_parts_cost=parts_cost,
        total_revenue=revenue,
    )
