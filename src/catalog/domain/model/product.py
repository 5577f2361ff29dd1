"""Product aggregate.

A product is identified by an opaque id and, alternatively, by its unique
name. ``amount`` is the stock on hand; everything else the catalog knows
about a product lives in ``attributes`` and is irrelevant to checkout.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any

from catalog.domain.exceptions import InsufficientStockError, ValidationError


def new_product_id() -> str:
    return uuid.uuid4().hex


@dataclass
class Product:
    """A product in the catalog.

    Invariant: ``amount`` is never negative.
    """

    id: str
    name: str
    amount: int
    attributes: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.amount < 0:
            raise ValidationError(
                f"Product amount cannot be negative, got {self.amount}"
            )

    @classmethod
    def create(cls, name: str, amount: int, attributes: dict[str, Any] | None = None) -> Product:
        return cls(id=new_product_id(), name=name, amount=amount, attributes=dict(attributes or {}))

    def ensure_available(self, quantity: int) -> None:
        """Raise InsufficientStockError if *quantity* exceeds stock on hand."""
        if quantity > self.amount:
            raise InsufficientStockError(self.name, quantity, self.amount)
