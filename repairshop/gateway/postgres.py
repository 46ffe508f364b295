"""PostgreSQL backed document store with LISTEN/NOTIFY change feeds."""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, TypeVar

import asyncpg

from .base import (
    ChangeCallback,
    Collection,
    ConditionFailedError,
    Document,
    ErrorCallback,
    GatewayError,
    GatewayTimeoutError,
    ReadError,
    RecordNotFoundError,
    Unsubscribe,
    WriteError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_DRIVER_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


@dataclass(slots=True, eq=False)
class _Subscription:
    namespace: str
    collection: Collection
    on_change: ChangeCallback
    on_error: ErrorCallback
    active: bool = True
    requested: int = 0
    delivered: int = 0


class PostgresDocumentStore:
    """Shared pool, schema and change listener for all namespaced gateways."""

    _CREATE_DOCUMENTS_SQL = """
    CREATE TABLE IF NOT EXISTS documents (
        namespace TEXT NOT NULL,
        collection TEXT NOT NULL,
        id TEXT NOT NULL,
        data JSONB NOT NULL DEFAULT '{}'::jsonb,
        created_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
        PRIMARY KEY (namespace, collection, id)
    )
    """

    _CREATE_ORDER_INDEX_SQL = """
    CREATE INDEX IF NOT EXISTS documents_namespace_collection_created_idx
    ON documents (namespace, collection, created_at)
    """

    _INSERT_SQL = """
    INSERT INTO documents (namespace, collection, id, data)
    VALUES ($1, $2, $3, $4::jsonb)
    RETURNING id
    """

    _MERGE_SQL = """
    UPDATE documents
    SET data = data || $4::jsonb,
        updated_at = CURRENT_TIMESTAMP
    WHERE namespace = $1 AND collection = $2 AND id = $3
    RETURNING id
    """

    _DELETE_SQL = """
    DELETE FROM documents
    WHERE namespace = $1 AND collection = $2 AND id = $3
    RETURNING id
    """

    _DECREMENT_SQL = """
    UPDATE documents
    SET data = jsonb_set(data, ARRAY[$4::text], to_jsonb((data ->> $4)::bigint - $5::bigint)),
        updated_at = CURRENT_TIMESTAMP
    WHERE namespace = $1 AND collection = $2 AND id = $3
      AND (data ->> $4)::bigint >= $5::bigint
    RETURNING (data ->> $4)::bigint AS value
    """

    _EXISTS_SQL = """
    SELECT 1 FROM documents
    WHERE namespace = $1 AND collection = $2 AND id = $3
    """

    _SELECT_ALL_SQL = """
    SELECT id, data
    FROM documents
    WHERE namespace = $1 AND collection = $2
    ORDER BY created_at ASC
    """

    _SELECT_EQUALS_SQL = """
    SELECT id, data
    FROM documents
    WHERE namespace = $1 AND collection = $2 AND data -> $3 = $4::jsonb
    ORDER BY created_at ASC
    """

    _NOTIFY_SQL = "SELECT pg_notify($1, $2)"

    def __init__(
        self,
        pool: asyncpg.Pool,
        *,
        dsn: str,
        channel: str = "repairshop_changes",
        timeout: float = 10.0,
        reconnect_delay: float = 1.0,
    ) -> None:
        self._pool = pool
        self._dsn = dsn
        self._channel = channel
        self._timeout = timeout
        self._reconnect_delay = reconnect_delay
        self._closing = False
        self._listener: asyncpg.Connection | None = None
        self._subscriptions: dict[tuple[str, str], list[_Subscription]] = {}
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def channel(self) -> str:
        return self._channel

    def gateway(self, namespace: str) -> PostgresGateway:
        return PostgresGateway(self, namespace)

    async def ensure_schema(self) -> None:
        async with self._pool.acquire() as connection:
            await connection.execute(self._CREATE_DOCUMENTS_SQL)
            await connection.execute(self._CREATE_ORDER_INDEX_SQL)

    async def test_connection(self) -> bool:
        async def probe() -> bool:
            async with self._pool.acquire() as connection:
                await connection.execute("SELECT 1")
            return True

        return await self.run("connection test", ReadError, probe)

    async def start_listener(self) -> None:
        """Open the dedicated connection that receives change notifications."""

        if self._listener is not None:
            return
        listener = await asyncpg.connect(dsn=self._dsn)
        await listener.add_listener(self._channel, self._on_notification)
        listener.add_termination_listener(self._on_listener_terminated)
        self._listener = listener
        logger.info("Listening for document changes on channel %s", self._channel)

    async def close(self) -> None:
        self._closing = True
        for subscriptions in self._subscriptions.values():
            for subscription in subscriptions:
                subscription.active = False
        self._subscriptions.clear()

        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

        listener, self._listener = self._listener, None
        if listener is not None and not listener.is_closed():
            await listener.remove_listener(self._channel, self._on_notification)
            await listener.close()

    async def run(
        self,
        operation: str,
        error_cls: type[GatewayError],
        action: Callable[[], Awaitable[T]],
    ) -> T:
        """Run ``action`` under the store timeout, translating driver errors."""

        try:
            return await asyncio.wait_for(action(), timeout=self._timeout)
        except asyncio.TimeoutError as exc:
            raise GatewayTimeoutError(f"{operation} timed out after {self._timeout}s") from exc
        except _DRIVER_ERRORS as exc:
            raise error_cls(f"{operation} failed: {exc}") from exc

    async def write(
        self,
        namespace: str,
        collection: Collection,
        sql: str,
        *args: Any,
    ) -> asyncpg.Record | None:
        """Execute a single-row write and announce it when a row was touched."""

        payload = json.dumps({"namespace": namespace, "collection": collection.value})
        async with self._pool.acquire() as connection:
            async with connection.transaction():
                row = await connection.fetchrow(sql, namespace, collection.value, *args)
                if row is not None:
                    await connection.execute(self._NOTIFY_SQL, self._channel, payload)
        return row

    async def exists(self, namespace: str, collection: Collection, record_id: str) -> bool:
        async with self._pool.acquire() as connection:
            row = await connection.fetchrow(self._EXISTS_SQL, namespace, collection.value, record_id)
        return row is not None

    async def fetch_all(self, namespace: str, collection: Collection) -> list[Document]:
        async with self._pool.acquire() as connection:
            rows = await connection.fetch(self._SELECT_ALL_SQL, namespace, collection.value)
        return [_row_to_document(row) for row in rows]

    async def fetch_equals(
        self, namespace: str, collection: Collection, field: str, value: Any
    ) -> list[Document]:
        async with self._pool.acquire() as connection:
            rows = await connection.fetch(
                self._SELECT_EQUALS_SQL,
                namespace,
                collection.value,
                field,
                json.dumps(value, default=str),
            )
        return [_row_to_document(row) for row in rows]

    def register(
        self,
        namespace: str,
        collection: Collection,
        on_change: ChangeCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        subscription = _Subscription(namespace, collection, on_change, on_error)
        key = (namespace, collection.value)
        self._subscriptions.setdefault(key, []).append(subscription)
        if self._listener is None:
            logger.warning("Subscribed to %s before the change listener was started", collection.value)
        self._schedule_refresh(subscription)

        def unsubscribe() -> None:
            subscription.active = False
            subscriptions = self._subscriptions.get(key, [])
            if subscription in subscriptions:
                subscriptions.remove(subscription)
            if not subscriptions:
                self._subscriptions.pop(key, None)

        return unsubscribe

    def _spawn(self, coroutine: Awaitable[None]) -> None:
        task = asyncio.get_running_loop().create_task(coroutine)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _schedule_refresh(self, subscription: _Subscription) -> None:
        subscription.requested += 1
        self._spawn(self._refresh(subscription, subscription.requested))

    async def _refresh(self, subscription: _Subscription, sequence: int) -> None:
        try:
            documents = await self.run(
                f"refresh of {subscription.collection.value}",
                ReadError,
                lambda: self.fetch_all(subscription.namespace, subscription.collection),
            )
        except GatewayError as exc:
            logger.warning("Could not refresh %s snapshot: %s", subscription.collection.value, exc)
            if subscription.active:
                subscription.on_error(exc)
            return

        # Refreshes may finish out of order; never replace a newer snapshot.
        if not subscription.active or sequence < subscription.delivered:
            return
        subscription.delivered = sequence
        subscription.on_change(documents)

    def _on_notification(self, connection: Any, pid: int, channel: str, payload: str) -> None:
        try:
            message = json.loads(payload)
            key = (str(message["namespace"]), str(message["collection"]))
        except (ValueError, KeyError, TypeError):
            logger.warning("Ignoring malformed change notification: %r", payload)
            return
        for subscription in list(self._subscriptions.get(key, [])):
            self._schedule_refresh(subscription)

    def _on_listener_terminated(self, connection: Any) -> None:
        logger.error("Change listener connection on channel %s was terminated", self._channel)
        self._listener = None
        error = ReadError("Change notification connection was lost")
        for subscriptions in list(self._subscriptions.values()):
            for subscription in list(subscriptions):
                if subscription.active:
                    subscription.on_error(error)
        if not self._closing:
            self._spawn(self._reconnect())

    async def _reconnect(self) -> None:
        """Reopen the listener, then refresh every subscription to pick up missed changes."""

        delay = self._reconnect_delay
        while self._listener is None and not self._closing:
            try:
                await asyncio.wait_for(self.start_listener(), timeout=self._timeout)
            except (*_DRIVER_ERRORS, asyncio.TimeoutError) as exc:
                logger.warning("Reconnecting change listener failed, retrying in %.1fs: %s", delay, exc)
                await asyncio.sleep(delay)
                delay = min(delay * 2, 30.0)

        for subscriptions in list(self._subscriptions.values()):
            for subscription in list(subscriptions):
                if subscription.active:
                    self._schedule_refresh(subscription)


class PostgresGateway:
    """Namespaced view over :class:`PostgresDocumentStore`."""

    def __init__(self, store: PostgresDocumentStore, namespace: str) -> None:
        self._store = store
        self._namespace = namespace

    @property
    def namespace(self) -> str:
        return self._namespace

    async def create(self, collection: Collection, record: Mapping[str, Any]) -> str:
        record_id = str(uuid.uuid4())
        data = json.dumps({key: value for key, value in record.items() if key != "id"}, default=str)

        async def action() -> str:
            row = await self._store.write(self._namespace, collection, self._store._INSERT_SQL, record_id, data)
            if row is None:
                raise WriteError(f"Failed to insert {collection.value} document")
            return str(row["id"])

        return await self._store.run(f"create in {collection.value}", WriteError, action)

    async def update(self, collection: Collection, record_id: str, partial: Mapping[str, Any]) -> None:
        data = json.dumps(dict(partial), default=str)

        async def action() -> None:
            row = await self._store.write(self._namespace, collection, self._store._MERGE_SQL, record_id, data)
            if row is None:
                raise RecordNotFoundError(f"{collection.value} document {record_id} not found")

        await self._store.run(f"update of {collection.value}/{record_id}", WriteError, action)

    async def delete(self, collection: Collection, record_id: str) -> None:
        async def action() -> None:
            row = await self._store.write(self._namespace, collection, self._store._DELETE_SQL, record_id)
            if row is None:
                raise RecordNotFoundError(f"{collection.value} document {record_id} not found")

        await self._store.run(f"delete of {collection.value}/{record_id}", WriteError, action)

    async def decrement(self, collection: Collection, record_id: str, field: str, amount: int = 1) -> int:
        """Subtract ``amount`` from a numeric field only if the result stays >= 0."""

        if amount <= 0:
            raise ValueError("Decrement amount must be positive")

        async def action() -> int:
            row = await self._store.write(
                self._namespace, collection, self._store._DECREMENT_SQL, record_id, field, amount
            )
            if row is not None:
                return int(row["value"])
            if not await self._store.exists(self._namespace, collection, record_id):
                raise RecordNotFoundError(f"{collection.value} document {record_id} not found")
            raise ConditionFailedError(f"{collection.value}/{record_id} has less than {amount} {field}")

        return await self._store.run(f"decrement of {collection.value}/{record_id}", WriteError, action)

    async def query(self, collection: Collection, field: str, value: Any) -> list[Document]:
        return await self._store.run(
            f"query on {collection.value}.{field}",
            ReadError,
            lambda: self._store.fetch_equals(self._namespace, collection, field, value),
        )

    def subscribe(
        self,
        collection: Collection,
        on_change: ChangeCallback,
        on_error: ErrorCallback,
    ) -> Unsubscribe:
        return self._store.register(self._namespace, collection, on_change, on_error)


def _row_to_document(row: Mapping[str, Any]) -> Document:
    data = row["data"]
    if isinstance(data, str):
        data = json.loads(data)
    return {**dict(data or {}), "id": str(row["id"])}
