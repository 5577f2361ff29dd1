"""Cart lines: the transient input of a checkout."""

from __future__ import annotations

from dataclasses import dataclass

from catalog.domain.exceptions import ValidationError
from catalog.domain.model.value_objects import Quantity


@dataclass(frozen=True)
class CartLine:
    """One requested (product name, quantity) pair. Never persisted."""

    name: str
    quantity: Quantity

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValidationError("Cart line product name is required")

    @property
    def amount(self) -> int:
        return self.quantity.value

    @classmethod
    def of(cls, name: str, amount: int) -> CartLine:
        return cls(name=name, quantity=Quantity(amount))
