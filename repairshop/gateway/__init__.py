"""Document store gateway used by the shop components."""

from .base import (
    Collection,
    ConditionFailedError,
    Document,
    GatewayError,
    GatewayTimeoutError,
    PersistenceGateway,
    ReadError,
    RecordNotFoundError,
    WriteError,
    snapshots,
)
from .postgres import PostgresDocumentStore, PostgresGateway

__all__ = [
    "Collection",
    "ConditionFailedError",
    "Document",
    "GatewayError",
    "GatewayTimeoutError",
    "PersistenceGateway",
    "PostgresDocumentStore",
    "PostgresGateway",
    "ReadError",
    "RecordNotFoundError",
    "WriteError",
    "snapshots",
]
