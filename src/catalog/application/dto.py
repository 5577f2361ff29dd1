"""Data Transfer Objects — plain containers that cross layer boundaries.

DTOs carry data between the CLI and application layers without
exposing domain internals to the outside world.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from catalog.domain.model.product import Product


@dataclass(frozen=True)
class ProductDTO:
    """Output: a product as displayed to the user."""

    id: str
    name: str
    amount: int
    attributes: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_domain(cls, product: Product) -> ProductDTO:
        return cls(
            id=product.id,
            name=product.name,
            amount=product.amount,
            attributes=dict(product.attributes),
        )

    def to_dict(self) -> dict[str, Any]:
        return {**self.attributes, "id": self.id, "name": self.name, "amount": self.amount}
