"""Per-user shop context wiring the store, mirrors and workflow together."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Iterable, Mapping

from repairshop.gateway import Collection, GatewayError, PersistenceGateway, snapshots
from repairshop.inventory import InventoryLedger, InventoryService
from repairshop.tickets import (
    ClientHistory,
    DashboardStats,
    StatusNotifier,
    TicketMirror,
    TicketWorkflow,
    compute_dashboard_stats,
)

logger = logging.getLogger(__name__)

GatewayFactory = Callable[[str], PersistenceGateway]


def namespace_for(app_id: str, user_id: str) -> str:
    return f"artifacts/{app_id}/users/{user_id}"


class ShopSession:
    """Everything one operator works with, bound to their namespace.

    ``start`` subscribes to both collections and keeps the mirrors fed until
    ``close`` is called; leaving an ``async with`` block closes the session.
    A failed subscription is opened again after ``resubscribe_delay``
    seconds, and the mirror keeps its last snapshot in the meantime.
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        *,
        user_id: str,
        notifier: StatusNotifier,
        low_stock_threshold: int = 5,
        resubscribe_delay: float = 1.0,
    ) -> None:
        self.user_id = user_id
        self.gateway = gateway
        self.ledger = InventoryLedger(low_stock_threshold=low_stock_threshold)
        self.tickets = TicketMirror()
        self.workflow = TicketWorkflow(gateway, self.ledger)
        self.inventory = InventoryService(gateway)
        self.history = ClientHistory(gateway)
        self.notifier = notifier
        self._resubscribe_delay = resubscribe_delay
        self._tasks: list[asyncio.Task[None]] = []
        self._first_snapshot = {
            Collection.TICKETS: asyncio.Event(),
            Collection.INVENTORY: asyncio.Event(),
        }

    @property
    def started(self) -> bool:
        return bool(self._tasks)

    @property
    def alive(self) -> bool:
        """True while every collection still has a running follower."""
        return bool(self._tasks) and not any(task.done() for task in self._tasks)

    @property
    def ready(self) -> bool:
        return all(event.is_set() for event in self._first_snapshot.values())

    def stats(self) -> DashboardStats:
        return compute_dashboard_stats(self.tickets.tickets)

    async def start(self) -> None:
        if self._tasks:
            return
        loop = asyncio.get_running_loop()
        self._tasks = [
            loop.create_task(self._follow(Collection.TICKETS, self.tickets.apply_snapshot)),
            loop.create_task(self._follow(Collection.INVENTORY, self.ledger.apply_snapshot)),
        ]
        logger.info("Opened shop session for %s", self.user_id)

    async def wait_ready(self, timeout: float | None = None) -> bool:
        waiters = [event.wait() for event in self._first_snapshot.values()]
        try:
            await asyncio.wait_for(asyncio.gather(*waiters), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Shop session for %s is still waiting for its first snapshots", self.user_id)
            return False
        return True

    async def close(self) -> None:
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info("Closed shop session for %s", self.user_id)

    async def __aenter__(self) -> ShopSession:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _follow(
        self,
        collection: Collection,
        apply: Callable[[Iterable[Mapping[str, Any]]], None],
    ) -> None:
        while True:
            try:
                async for documents in snapshots(self.gateway, collection):
                    apply(documents)
                    self._first_snapshot[collection].set()
            except GatewayError as exc:
                logger.error(
                    "Lost %s feed for %s, resubscribing in %.1fs: %s",
                    collection.value,
                    self.user_id,
                    self._resubscribe_delay,
                    exc,
                )
            await asyncio.sleep(self._resubscribe_delay)


class SessionRegistry:
    """Open at most one :class:`ShopSession` per user and close them together.

    Sessions unused for ``idle_timeout`` seconds are closed on the next
    lookup; ``None`` keeps them until :meth:`aclose`.
    """

    def __init__(
        self,
        gateway_factory: GatewayFactory,
        *,
        app_id: str,
        notifier: StatusNotifier,
        ready_timeout: float = 5.0,
        idle_timeout: float | None = None,
        low_stock_threshold: int = 5,
        resubscribe_delay: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._gateway_factory = gateway_factory
        self._app_id = app_id
        self._notifier = notifier
        self._ready_timeout = ready_timeout
        self._idle_timeout = idle_timeout
        self._low_stock_threshold = low_stock_threshold
        self._resubscribe_delay = resubscribe_delay
        self._clock = clock
        self._sessions: dict[str, ShopSession] = {}
        self._last_used: dict[str, float] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    async def get(self, user_id: str) -> ShopSession:
        async with self._lock:
            now = self._clock()
            await self._evict_idle(now, keep=user_id)

            session = self._sessions.get(user_id)
            if session is not None and not session.alive:
                logger.warning("Replacing stopped shop session for %s", user_id)
                await self._discard(user_id)
                session = None
            if session is None:
                gateway = self._gateway_factory(namespace_for(self._app_id, user_id))
                session = ShopSession(
                    gateway,
                    user_id=user_id,
                    notifier=self._notifier,
                    low_stock_threshold=self._low_stock_threshold,
                    resubscribe_delay=self._resubscribe_delay,
                )
                await session.start()
                self._sessions[user_id] = session
            self._last_used[user_id] = now

        if not session.ready:
            await session.wait_ready(self._ready_timeout)
        return session

    async def aclose(self) -> None:
        async with self._lock:
            sessions, self._sessions = list(self._sessions.values()), {}
            self._last_used.clear()
        for session in sessions:
            await session.close()

    async def _evict_idle(self, now: float, *, keep: str) -> None:
        if self._idle_timeout is None:
            return
        expired = [
            user_id
            for user_id, last_used in self._last_used.items()
            if user_id != keep and now - last_used > self._idle_timeout
        ]
        for user_id in expired:
            logger.info("Closing idle shop session for %s", user_id)
            await self._discard(user_id)

    async def _discard(self, user_id: str) -> None:
        self._last_used.pop(user_id, None)
        session = self._sessions.pop(user_id, None)
        if session is not None:
            await session.close()
