"""
MongoDB connection factory utilities for the bookstore query runner.

Provides URI composition from settings and a scoped client context manager:
the client is created once, verified with a `ping` (retried with exponential
backoff via tenacity for transient connection failures), and always closed
when the block exits.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Callable, Generator, Optional
from urllib.parse import quote_plus

from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.errors import ConnectionFailure
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from bookstore.config import Settings, get_settings
from bookstore.errors import StoreUnavailable
from bookstore.utils.logging import get_logger

log = get_logger(__name__)

ClientFactory = Callable[..., MongoClient]


def build_uri(settings: Optional[Settings] = None) -> str:
    """
    Compose a MongoDB connection URI from settings.

    An explicit `MONGO_URI` wins; otherwise host, port and optional
    credentials are combined (credentials are percent-escaped).
    """
    settings = settings or get_settings()
    if settings.mongo_uri:
        return settings.mongo_uri

    auth = ""
    query = ""
    if settings.db_user:
        auth = f"{quote_plus(settings.db_user)}:{quote_plus(settings.db_password or '')}@"
        query = f"/?authSource={quote_plus(settings.db_auth_source)}"
    return f"mongodb://{auth}{settings.db_host}:{settings.db_port}{query}"


def redacted_uri(settings: Optional[Settings] = None) -> str:
    """Connection URI with the password masked, for logs and `info` output."""
    settings = settings or get_settings()
    uri = build_uri(settings)
    if settings.db_password and not settings.mongo_uri:
        uri = uri.replace(f":{quote_plus(settings.db_password)}@", ":***@", 1)
    return uri


def ping(client: MongoClient, attempts: int = 3) -> None:
    """
    Verify the server is reachable, retrying transient connection failures.

    Raises
    ------
    pymongo.errors.ConnectionFailure
        If every attempt fails.
    """
    for attempt in Retrying(
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(ConnectionFailure),
        reraise=True,
    ):
        with attempt:
            client.admin.command("ping")


@contextmanager
def mongo_client(
    settings: Optional[Settings] = None,
    client_factory: Optional[ClientFactory] = None,
    **client_kwargs: Any,
) -> Generator[MongoClient, None, None]:
    """
    Context manager yielding a verified MongoClient.

    The client is closed on every exit path, including a failed ping.

    Raises
    ------
    StoreUnavailable
        If the server cannot be reached after the configured attempts.

    Example
    -------
        with mongo_client() as client:
            books = get_collection(client)
    """
    settings = settings or get_settings()
    client_kwargs.setdefault("serverSelectionTimeoutMS", settings.db_server_selection_timeout_ms)

    log.info("Connecting to MongoDB", extra={"uri": redacted_uri(settings)})
    factory = client_factory or MongoClient
    client = factory(build_uri(settings), **client_kwargs)
    try:
        try:
            ping(client, attempts=settings.db_connect_attempts)
        except ConnectionFailure as exc:
            log.error("MongoDB unreachable", extra={"error": str(exc)})
            raise StoreUnavailable(f"Cannot reach MongoDB: {exc}") from exc
        log.info("Connected to MongoDB server")
        yield client
    finally:
        client.close()
        log.info("Connection closed")


def get_collection(client: MongoClient, settings: Optional[Settings] = None) -> Collection:
    """Return the configured books collection from an open client."""
    settings = settings or get_settings()
    return client[settings.db_name][settings.db_collection]


__all__ = [
    "build_uri",
    "get_collection",
    "mongo_client",
    "ping",
    "redacted_uri",
]
