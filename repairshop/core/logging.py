"""Logging and tracing setup for the repair shop API."""

from __future__ import annotations

import logging
from logging.config import dictConfig
from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from repairshop.core.config import Settings

APP_LOGGER = "repairshop"

_active_provider: TracerProvider | None = None


def parse_otlp_headers(raw: str | None) -> dict[str, str]:
    """Parse ``key=value`` pairs separated by commas, skipping malformed entries."""

    pairs = (entry.partition("=") for entry in (raw or "").split(","))
    return {key.strip(): value.strip() for key, sep, value in pairs if sep and key.strip()}


def build_logging_config(settings: Settings) -> dict[str, Any]:
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"shop": {"format": settings.log_format}},
        "handlers": {
            "console": {"class": "logging.StreamHandler", "formatter": "shop", "level": level},
        },
        "loggers": {
            APP_LOGGER: {"level": level},
            # asyncpg logs every LISTEN payload at DEBUG
            "asyncpg": {"level": max(level, logging.INFO)},
        },
        "root": {"handlers": ["console"], "level": level},
    }


def configure_logging(settings: Settings) -> logging.Logger:
    """Apply the logging config and return the application logger."""

    dictConfig(build_logging_config(settings))
    logger = logging.getLogger(APP_LOGGER)
    logger.debug("Logging configured for %s (%s)", settings.app_name, settings.environment)
    return logger


def init_tracer(settings: Settings) -> TracerProvider | None:
    """Install an OTLP tracer provider once, when tracing is enabled."""

    global _active_provider

    if not settings.otel_enabled or _active_provider is not None:
        return None

    exporter_options: dict[str, Any] = {}
    if settings.otel_exporter_otlp_endpoint:
        exporter_options["endpoint"] = settings.otel_exporter_otlp_endpoint
    headers = parse_otlp_headers(settings.otel_exporter_otlp_headers)
    if headers:
        exporter_options["headers"] = headers

    provider = TracerProvider(
        resource=Resource(
            attributes={
                "service.name": settings.otel_service_name,
                "deployment.environment": settings.environment,
            }
        )
    )
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(**exporter_options)))
    trace.set_tracer_provider(provider)
    _active_provider = provider
    return provider


def shutdown_tracer(provider: TracerProvider | None) -> None:
    global _active_provider

    if provider is None:
        return
    provider.shutdown()
    if provider is _active_provider:
        _active_provider = None
