"""
Infrastructure package for the bookstore query runner.

Centralizes MongoDB connectivity concerns (URI composition, scoped clients).
Keep this layer focused on I/O and resource management, decoupled from
query construction.
"""

from bookstore.infrastructure.db_factory import (
    build_uri,
    get_collection,
    mongo_client,
    ping,
    redacted_uri,
)

__all__ = [
    "build_uri",
    "get_collection",
    "mongo_client",
    "ping",
    "redacted_uri",
]
