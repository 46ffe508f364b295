from __future__ import annotations

from enum import Enum


class TicketStatus(str, Enum):
    """Repair ticket states. Any state may follow any other."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    READY = "ready"
    DELIVERED = "delivered"

    @classmethod
    def initial_state(cls) -> TicketStatus:
        return cls.PENDING

    @property
    def label(self) -> str:
        return _LABELS[self]

    @property
    def is_finished(self) -> bool:
        return self in FINISHED_STATUSES


_LABELS = {
    TicketStatus.PENDING: "Pending",
    TicketStatus.IN_PROGRESS: "In Progress",
    TicketStatus.READY: "Ready",
    TicketStatus.DELIVERED: "Delivered",
}

FINISHED_STATUSES = frozenset({TicketStatus.READY, TicketStatus.DELIVERED})
