"""Abstract transactional store for the Product aggregate.

Defined in the domain layer so the domain never depends on
infrastructure. Concrete implementations (in-memory, JSON, SQL)
live in the infrastructure layer.

Within a transaction, reads observe the snapshot taken at ``begin()``
plus the transaction's own staged writes. Other transactions never see
staged writes until ``commit()``; conflicting commits are detected
optimistically (first committer wins).
"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from collections.abc import Mapping
from enum import Enum
from typing import Any

from catalog.domain.exceptions import StoreError
from catalog.domain.model.product import Product

Criteria = Mapping[str, Any]

CRITERIA_FIELDS = frozenset({"id", "name", "amount"})
MUTABLE_FIELDS = frozenset({"name", "amount", "attributes"})


class TransactionState(Enum):
    ACTIVE = "ACTIVE"
    COMMITTED = "COMMITTED"
    ABORTED = "ABORTED"


class Transaction:
    """Opaque handle returned by ``ProductStore.begin()``."""

    def __init__(self) -> None:
        self.id = uuid.uuid4().hex
        self.state = TransactionState.ACTIVE

    @property
    def active(self) -> bool:
        return self.state is TransactionState.ACTIVE

    def ensure_active(self) -> None:
        if not self.active:
            raise StoreError(f"Transaction {self.id} is {self.state.value.lower()}")

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.id} {self.state.value}>"


def check_criteria(criteria: Criteria) -> None:
    unknown = set(criteria) - CRITERIA_FIELDS
    if unknown or not criteria:
        raise ValueError(f"Unsupported product criteria: {sorted(unknown) or 'empty'}")


def check_changes(changes: Mapping[str, Any]) -> None:
    unknown = set(changes) - MUTABLE_FIELDS
    if unknown:
        raise ValueError(f"Unsupported product changes: {sorted(unknown)}")


def matches(product: Product, criteria: Criteria) -> bool:
    return all(getattr(product, key) == value for key, value in criteria.items())


class ProductStore(ABC):

    # --- Transactions ---------------------------------------------------------

    @abstractmethod
    async def begin(self) -> Transaction:
        """Open a transaction."""

    @abstractmethod
    async def find_one(self, criteria: Criteria, tx: Transaction | None = None) -> Product | None:
        """Return the first product matching *criteria*, or None.

        Without *tx* the latest committed state is read.
        """

    @abstractmethod
    async def conditional_update(
        self,
        criteria: Criteria,
        changes: Mapping[str, Any],
        tx: Transaction,
    ) -> Product | None:
        """Stage *changes* on the product matching *criteria*.

        Returns the updated product, or None when nothing matches or the
        record was changed by another committed transaction since the
        snapshot was taken.
        """

    @abstractmethod
    async def commit(self, tx: Transaction) -> None:
        """Publish every staged write atomically.

        Raises WriteConflictError when another transaction committed a
        write to one of the same records first.
        """

    @abstractmethod
    async def abort(self, tx: Transaction) -> None:
        """Discard staged writes. Aborting a finished transaction is a no-op."""

    # --- Catalog CRUD ---------------------------------------------------------

    @abstractmethod
    async def list_all(self) -> list[Product]:
        """Return every product in the catalog."""

    @abstractmethod
    async def add(self, product: Product) -> Product:
        """Persist a new product. Raises ValidationError on a duplicate name."""

    @abstractmethod
    async def update(self, product_id: str, changes: Mapping[str, Any]) -> Product | None:
        """Apply *changes* to a product, or return None if it does not exist."""

    @abstractmethod
    async def delete(self, product_id: str) -> Product | None:
        """Remove a product and return it, or None if it does not exist."""

    async def get_by_id(self, product_id: str) -> Product | None:
        return await self.find_one({"id": product_id})

    async def get_by_name(self, name: str) -> Product | None:
        return await self.find_one({"name": name})

    async def close(self) -> None:
        """Release connections or file handles held by the store."""
