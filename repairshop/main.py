import logging
from contextlib import asynccontextmanager

import asyncpg
from fastapi import FastAPI

from repairshop.api.routes import dashboard, history, inventory, ping, tickets
from repairshop.core.config import get_settings
from repairshop.core.logging import configure_logging, init_tracer, shutdown_tracer
from repairshop.gateway import PostgresDocumentStore
from repairshop.session import SessionRegistry
from repairshop.tickets import StatusNotifier


@asynccontextmanager
async def lifespan(app: FastAPI):  # pragma: no cover - executed by framework
    settings = get_settings()
    logger = configure_logging(settings)
    tracer_provider = init_tracer(settings)

    app.state.logger = logger
    app.state.tracer_provider = tracer_provider
    app.state.document_store = None
    app.state.sessions = None

    pool = None
    store = None
    try:
        pool = await asyncpg.create_pool(
            dsn=settings.postgres_dsn,
            min_size=settings.postgres_pool_min_size,
            max_size=settings.postgres_pool_max_size,
        )
        store = PostgresDocumentStore(
            pool,
            dsn=settings.postgres_dsn,
            channel=settings.notify_channel,
            timeout=settings.gateway_timeout,
            reconnect_delay=settings.listener_reconnect_delay,
        )
        await store.ensure_schema()
        await store.start_listener()
        app.state.document_store = store
        app.state.sessions = SessionRegistry(
            store.gateway,
            app_id=settings.app_id,
            notifier=StatusNotifier(
                phone_number=settings.notification_phone,
                base_url=settings.notification_base_url,
            ),
            ready_timeout=settings.session_ready_timeout,
            idle_timeout=settings.session_idle_timeout,
            low_stock_threshold=settings.low_stock_threshold,
            resubscribe_delay=settings.session_resubscribe_delay,
        )
    except (OSError, asyncpg.PostgresError) as exc:
        logger.error("Document store unavailable, shop endpoints will answer 503: %s", exc)
        if store is not None:
            await store.close()
            store = None
        app.state.document_store = None
    try:
        yield
    finally:
        if app.state.sessions is not None:
            await app.state.sessions.aclose()
        if store is not None:
            await store.close()
        if pool is not None:
            await pool.close()
        shutdown_tracer(tracer_provider)
        logging.getLogger(__name__).info("Shut down %s", settings.app_name)


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.include_router(ping.router)
    app.include_router(tickets.router)
    app.include_router(inventory.router)
    app.include_router(dashboard.router)
    app.include_router(history.router)
    return app


app = create_app()
