"""Repair ticket records, workflow and derived views."""

from .history import ClientHistory
from .mirror import TicketMirror
from .models import Ticket, TicketDraft
from .notifications import StatusNotification, StatusNotifier, compose_status_message
from .service import (
    HistoryLookupError,
    InsufficientStockError,
    InvalidTicketDraftError,
    TicketNotFoundError,
    TicketServiceError,
    TicketWorkflow,
    TicketWriteError,
)
from .state import TicketStatus
from .stats import DashboardStats, compute_dashboard_stats

__all__ = [
    "ClientHistory",
    "DashboardStats",
    "HistoryLookupError",
    "InsufficientStockError",
    "InvalidTicketDraftError",
    "StatusNotification",
    "StatusNotifier",
    "Ticket",
    "TicketDraft",
    "TicketMirror",
    "TicketNotFoundError",
    "TicketServiceError",
    "TicketStatus",
    "TicketWorkflow",
    "TicketWriteError",
    "compose_status_message",
    "compute_dashboard_stats",
]
