"""Exceptions raised by the order sync engine."""

from collections.abc import Iterable


class OrderSyncError(Exception):
    """Base class for order sync failures."""


class DuplicateOrderError(OrderSyncError):
    """A bulk insert hit the unique constraint on remote id or order number.

    The insert has been rolled back; ``identities`` lists the records that
    were part of the failed statement so the caller can re-resolve them.
    """

    def __init__(self, identities: Iterable[str], original: Exception | None = None):
        self.identities = list(identities)
        self.original = original
        super().__init__(
            f"Unique constraint violated while inserting {len(self.identities)} orders"
        )


class RelationSyncError(OrderSyncError):
    """Reconciliation of one child relation kind failed."""

    def __init__(self, kind: str, original: Exception):
        self.kind = kind
        self.original = original
        super().__init__(f"Failed to sync {kind}: {original}")


class OrdersApiError(OrderSyncError):
    """The remote order API returned an error or an unreadable response."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)
