"""
Error types raised by the query layer.

Only two conditions are errors: the store cannot be reached, or a query
description is malformed. Empty results, zero-row updates/deletes and
existing indexes are ordinary return values.
"""

from __future__ import annotations


class BookstoreError(Exception):
    """Base class for errors raised by the bookstore package."""


class StoreUnavailable(BookstoreError):
    """The record store could not be reached (connection/network failure)."""


class InvalidQuery(BookstoreError, ValueError):
    """A filter, projection, change set or pipeline stage is malformed."""


__all__ = ["BookstoreError", "StoreUnavailable", "InvalidQuery"]
