"""In-memory implementation of ProductStore.

Snapshot isolation with per-record versions: ``begin()`` captures the
committed records, staged writes stay private to the transaction, and
``commit()`` publishes them only if none of the touched records was
committed by someone else in the meantime.
"""

from __future__ import annotations

import asyncio
import copy
import dataclasses
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from catalog.domain.exceptions import ValidationError, WriteConflictError
from catalog.domain.model.product import Product
from catalog.domain.repository.product_store import (
    Criteria,
    ProductStore,
    Transaction,
    TransactionState,
    check_changes,
    check_criteria,
    matches,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Record:
    product: Product
    version: int = 1


class MemoryTransaction(Transaction):

    def __init__(self, snapshot: dict[str, Record]) -> None:
        super().__init__()
        self.snapshot = snapshot
        self.staged: dict[str, Product] = {}

    def view(self) -> Iterable[Product]:
        for product_id, record in self.snapshot.items():
            yield self.staged.get(product_id, record.product)


class InMemoryProductStore(ProductStore):
    """Dict-backed store. ``latency`` simulates a remote round-trip."""

    def __init__(self, products: Iterable[Product] = (), latency: float = 0.0) -> None:
        self._records: dict[str, Record] = {
            p.id: Record(copy.deepcopy(p)) for p in products
        }
        self._latency = latency
        self._lock = asyncio.Lock()

    # --- Transactions ---------------------------------------------------------

    async def begin(self) -> MemoryTransaction:
        await self._pause()
        tx = MemoryTransaction(dict(self._records))
        logger.debug("begin %s", tx.id)
        return tx

    async def find_one(self, criteria: Criteria, tx: Transaction | None = None) -> Product | None:
        check_criteria(criteria)
        await self._pause()
        if tx is None:
            candidates: Iterable[Product] = (r.product for r in self._records.values())
        else:
            tx.ensure_active()
            candidates = self._as_memory(tx).view()
        for product in candidates:
            if matches(product, criteria):
                return copy.deepcopy(product)
        return None

    async def conditional_update(
        self,
        criteria: Criteria,
        changes: Mapping[str, Any],
        tx: Transaction,
    ) -> Product | None:
        check_criteria(criteria)
        check_changes(changes)
        mtx = self._as_memory(tx)
        await self._pause()
        mtx.ensure_active()

        current = next((p for p in mtx.view() if matches(p, criteria)), None)
        if current is None:
            return None
        committed = self._records.get(current.id)
        if committed is None or committed.version != mtx.snapshot[current.id].version:
            logger.debug("%s: %s changed since snapshot", mtx.id, current.name)
            return None

        updated = dataclasses.replace(copy.deepcopy(current), **changes)
        mtx.staged[updated.id] = updated
        return copy.deepcopy(updated)

    async def commit(self, tx: Transaction) -> None:
        mtx = self._as_memory(tx)
        await self._pause()
        mtx.ensure_active()
        async with self._lock:
            for product_id, product in mtx.staged.items():
                committed = self._records.get(product_id)
                if committed is None or committed.version != mtx.snapshot[product_id].version:
                    raise WriteConflictError(product.name)

            records = dict(self._records)
            for product_id, product in mtx.staged.items():
                records[product_id] = Record(product, records[product_id].version + 1)
            self._persist(records.values())
            self._records = records
        mtx.state = TransactionState.COMMITTED
        logger.debug("commit %s (%d write(s))", mtx.id, len(mtx.staged))

    async def abort(self, tx: Transaction) -> None:
        mtx = self._as_memory(tx)
        if not mtx.active:
            return
        mtx.staged.clear()
        mtx.state = TransactionState.ABORTED
        logger.debug("abort %s", mtx.id)

    # --- Catalog CRUD ---------------------------------------------------------

    async def list_all(self) -> list[Product]:
        await self._pause()
        return [copy.deepcopy(r.product) for r in self._records.values()]

    async def add(self, product: Product) -> Product:
        await self._pause()
        async with self._lock:
            self._ensure_unique_name(product.name)
            records = dict(self._records)
            records[product.id] = Record(copy.deepcopy(product))
            self._persist(records.values())
            self._records = records
        return copy.deepcopy(product)

    async def update(self, product_id: str, changes: Mapping[str, Any]) -> Product | None:
        check_changes(changes)
        await self._pause()
        async with self._lock:
            record = self._records.get(product_id)
            if record is None:
                return None
            if "name" in changes and changes["name"] != record.product.name:
                self._ensure_unique_name(changes["name"])
            updated = dataclasses.replace(copy.deepcopy(record.product), **changes)
            records = dict(self._records)
            records[product_id] = Record(updated, record.version + 1)
            self._persist(records.values())
            self._records = records
        return copy.deepcopy(updated)

    async def delete(self, product_id: str) -> Product | None:
        await self._pause()
        async with self._lock:
            record = self._records.get(product_id)
            if record is None:
                return None
            records = dict(self._records)
            del records[product_id]
            self._persist(records.values())
            self._records = records
        return copy.deepcopy(record.product)

    # --- Hooks & helpers ------------------------------------------------------

    def _persist(self, records: Iterable[Record]) -> None:
        """Durability hook; called with the full record set before it is published."""

    async def _pause(self) -> None:
        await asyncio.sleep(self._latency)

    def _ensure_unique_name(self, name: str) -> None:
        if any(r.product.name == name for r in self._records.values()):
            raise ValidationError(f"Product '{name}' already exists")

    @staticmethod
    def _as_memory(tx: Transaction) -> MemoryTransaction:
        if not isinstance(tx, MemoryTransaction):
            raise TypeError(f"Expected a MemoryTransaction, got {type(tx).__name__}")
        return tx
