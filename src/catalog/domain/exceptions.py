"""Domain-level exceptions.

Every failure the catalog can report is a DomainException carrying a
machine-readable ``kind`` so callers (the CLI today, an HTTP layer later)
can map it to an exit code or status without parsing messages.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(Enum):
    INVALID_INPUT = "InvalidInput"
    PRODUCT_NOT_FOUND = "ProductNotFound"
    INSUFFICIENT_STOCK = "InsufficientStock"
    INTERNAL_FAILURE = "InternalFailure"


class DomainException(Exception):
    """Base class for all domain errors."""

    kind: ErrorKind = ErrorKind.INTERNAL_FAILURE

    def __init__(self, message: str, details: list[dict[str, str]] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or []

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"kind": self.kind.value, "message": self.message}
        if self.details:
            data["details"] = list(self.details)
        return data


class ValidationError(DomainException):
    """Input was malformed or a business rule was violated."""

    kind = ErrorKind.INVALID_INPUT


class EntityNotFoundError(DomainException):
    """A requested entity does not exist."""

    kind = ErrorKind.PRODUCT_NOT_FOUND


class ProductNotFoundError(EntityNotFoundError):

    def __init__(self, name: str) -> None:
        super().__init__(f"Product not found: '{name}'")
        self.name = name


class InsufficientStockError(DomainException):
    """Requested quantity exceeds the stock currently available."""

    kind = ErrorKind.INSUFFICIENT_STOCK

    def __init__(
        self,
        name: str,
        requested: int | None,
        available: int | None,
        message: str | None = None,
    ) -> None:
        super().__init__(
            message
            or f"Insufficient stock for {name} "
            f"(requested {requested}, have {available} available)"
        )
        self.name = name
        self.requested = requested
        self.available = available


class StockConflictError(InsufficientStockError):
    """Stock changed under a conditional write (a concurrent checkout won)."""

    def __init__(self, name: str, requested: int | None = None) -> None:
        super().__init__(
            name,
            requested,
            None,
            f"Stock for {name} changed during checkout, nothing was applied",
        )


class StoreError(DomainException):
    """The product store failed: I/O, connection loss, timeout."""


class WriteConflictError(StoreError):
    """Commit rejected because another transaction wrote the same record first."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Write conflict on product '{name}'")
        self.name = name


class CheckoutError(DomainException):
    """The single error a failed checkout surfaces.

    ``reason`` is the line failure that aborted the transaction; the kind,
    message and details are taken from it.
    """

    def __init__(self, reason: DomainException) -> None:
        super().__init__(reason.message, reason.details)
        self.kind = reason.kind
        self.reason = reason
