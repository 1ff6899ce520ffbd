# Overview: Domain error taxonomy shared by services and the HTTP adapter.

"""
Every operation failure is one of these exceptions. Services raise them
before (or instead of) committing, so persisted state is unchanged whenever
one escapes. The HTTP layer renders them with ``http_status`` and the
human-readable message, which the admin UI displays as-is.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for domain errors."""
    http_status = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(LedgerError, ValueError):
    """Malformed input, caught before any mutation."""
    http_status = 400


class NotFoundError(LedgerError):
    """Referenced entity does not exist."""
    http_status = 404


class InsufficientStockError(LedgerError):
    """Requested quantity exceeds what is on hand."""
    http_status = 409

    def __init__(self, product_name: str, requested: int, available: int, product_id: int | None = None):
        super().__init__(
            f"Insufficient stock for {product_name}: requested {requested}, available {available}",
            details={
                "product_id": product_id,
                "product_name": product_name,
                "requested": requested,
                "available": available,
            },
        )
        self.product_name = product_name
        self.requested = requested
        self.available = available


class ForbiddenError(LedgerError):
    """Role may not perform this state transition."""
    http_status = 403


class UnauthorizedError(LedgerError):
    """Role may not use a privileged stock or cost path."""
    http_status = 403


class InvalidCredentialsError(LedgerError):
    """Password re-authentication failed."""
    http_status = 401


class ConflictError(LedgerError, ValueError):
    """Business rule conflict, e.g. delete blocked by existing references."""
    http_status = 409
