"""Document store contract shared by the workflow components."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Any, AsyncIterator, Callable, Mapping, Protocol

logger = logging.getLogger(__name__)

Document = dict[str, Any]
ChangeCallback = Callable[[list[Document]], None]
ErrorCallback = Callable[[Exception], None]
Unsubscribe = Callable[[], None]


class Collection(str, Enum):
    """Collections stored under every session namespace."""

    TICKETS = "tickets"
    INVENTORY = "inventory"


class GatewayError(RuntimeError):
    """Base error for document store failures."""


class WriteError(GatewayError):
    """Raised when a write could not be applied by the store."""


class ReadError(GatewayError):
    """Raised when a read or subscription refresh fails."""


class RecordNotFoundError(GatewayError):
    """Raised when the targeted document no longer exists."""


class ConditionFailedError(WriteError):
    """Raised when a conditional write finds its precondition violated."""


class GatewayTimeoutError(GatewayError):
    """Raised when the store does not answer within the configured timeout."""


class PersistenceGateway(Protocol):
    """Operations a namespaced document store offers to the workflow."""

    async def create(self, collection: Collection, record: Mapping[str, Any]) -> str:
        ...

    async def update(self, collection: Collection, record_id: str, partial: Mapping[str, Any]) -> None:
        ...

    async def delete(self, collection: Collection, record_id: str) -> None:
        ...

    async def decrement(self, collection: Collection, record_id: str, field: str, amount: int = 1) -> int:
        ...

    async def query(self, collection: Collection, field: str, value: Any) -> list[Document]:
        ...

    def subscribe(
        self,
        collection: Collection,
        on_change: ChangeCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        ...


async def snapshots(gateway: PersistenceGateway, collection: Collection) -> AsyncIterator[list[Document]]:
    """Yield full collection snapshots until the consumer stops iterating.

    The subscription is released when the generator is closed or the consuming
    task is cancelled. A subscription error is raised to the consumer as
    :class:`ReadError` and ends the stream.
    """

    queue: asyncio.Queue[list[Document] | Exception] = asyncio.Queue()
    unsubscribe = gateway.subscribe(collection, queue.put_nowait, queue.put_nowait)
    try:
        while True:
            item = await queue.get()
            if isinstance(item, Exception):
                if isinstance(item, ReadError):
                    raise item
                raise ReadError(f"Subscription to {collection.value} failed: {item}") from item
            yield item
    finally:
        unsubscribe()
        logger.debug("Released subscription to %s", collection.value)
