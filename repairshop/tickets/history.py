from __future__ import annotations

import logging

from repairshop.gateway import Collection, GatewayError, PersistenceGateway

from .models import Ticket, ticket_from_document
from .service import HistoryLookupError

logger = logging.getLogger(__name__)


class ClientHistory:
    """Look up every ticket filed under one client name.

    Matching is exact and case-sensitive. Results are a one-off read and do
    not follow later changes until :meth:`search` is called again.
    """

    def __init__(self, gateway: PersistenceGateway) -> None:
        self._gateway = gateway
        self._term: str | None = None
        self._results: list[Ticket] = []

    @property
    def term(self) -> str | None:
        return self._term

    @property
    def results(self) -> list[Ticket]:
        return list(self._results)

    async def search(self, client_name: str | None) -> list[Ticket]:
        if not client_name:
            return self.results

        try:
            documents = await self._gateway.query(Collection.TICKETS, "client_name", client_name)
        except GatewayError as exc:
            logger.error("History lookup for %r failed: %s", client_name, exc)
            raise HistoryLookupError(f"Could not load history for {client_name}: {exc}") from exc

        self._term = client_name
        self._results = [ticket_from_document(document) for document in documents]
        logger.debug("History for %r returned %d tickets", client_name, len(self._results))
        return self.results
