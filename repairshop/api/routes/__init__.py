"""Route modules exposed by the API package."""

from . import dashboard, history, inventory, ping, tickets

__all__ = ["dashboard", "history", "inventory", "ping", "tickets"]
