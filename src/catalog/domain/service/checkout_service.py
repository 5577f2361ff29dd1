"""Domain service: Checkout.

Decrements stock for every line of a cart inside one store transaction,
or for none of them. Lines naming distinct products are staged
concurrently; lines naming the same product run one after another in
cart order, so repeated names are applied cumulatively (the transaction
reads its own staged writes).

Every stock write is conditioned on the amount just read. A concurrent
checkout that committed first makes the conditional write (or the
commit) fail, and this checkout aborts instead of overselling.

Failure is fail-fast: the first failing line cancels its siblings, the
transaction is aborted and a single CheckoutError is raised. When
several lines failed before cancellation took effect, the one earliest
in the cart wins.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from catalog.domain.exceptions import (
    CheckoutError,
    DomainException,
    InsufficientStockError,
    ProductNotFoundError,
    StockConflictError,
    StoreError,
    ValidationError,
    WriteConflictError,
)
from catalog.domain.model.cart import CartLine
from catalog.domain.model.product import Product
from catalog.domain.repository.product_store import ProductStore, Transaction

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENCY = 16


class _LineFailure(Exception):
    """Carries a line's error out of the task group with its cart index."""

    def __init__(self, index: int, line: CartLine, error: Exception) -> None:
        super().__init__(index, line, error)
        self.index = index
        self.line = line
        self.error = error


class CheckoutService:

    def __init__(
        self,
        store: ProductStore,
        timeout: float | None = None,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self._store = store
        self._timeout = timeout
        self._max_concurrency = max_concurrency

    async def checkout(self, cart: Sequence[CartLine]) -> list[Product]:
        """Apply every cart line or none of them.

        Returns the post-decrement products in cart order. Raises
        CheckoutError whose ``kind`` tells business-rule rejections
        (PRODUCT_NOT_FOUND, INSUFFICIENT_STOCK) apart from store failures
        (INTERNAL_FAILURE). Nothing is retried.
        """
        if not cart:
            raise CheckoutError(ValidationError("Cart must contain at least one line"))

        try:
            tx = await self._store.begin()
        except Exception as exc:
            raise CheckoutError(self._classify(exc)) from exc
        logger.debug("checkout %s: staging %d line(s)", tx.id, len(cart))

        try:
            async with asyncio.timeout(self._timeout):
                products = await self._stage_all(cart, tx)
            # Once issued, a commit may land even if its caller gives up,
            # so it runs to completion outside the deadline.
            await asyncio.shield(self._store.commit(tx))
        except asyncio.CancelledError:
            await self._abort(tx)
            raise
        except _LineFailure as failure:
            reason = self._classify(failure.error)
            await self._abort(tx)
            logger.warning(
                "checkout %s aborted at line %d (%s): %s",
                tx.id, failure.index, failure.line.name, reason.message,
            )
            raise CheckoutError(reason) from failure.error
        except Exception as exc:
            reason = self._classify(exc)
            await self._abort(tx)
            logger.warning("checkout %s aborted: %s", tx.id, reason.message)
            raise CheckoutError(reason) from exc

        logger.info("checkout %s committed %d line(s)", tx.id, len(cart))
        return products

    # --- Staging --------------------------------------------------------------

    async def _stage_all(self, cart: Sequence[CartLine], tx: Transaction) -> list[Product]:
        by_name: dict[str, list[tuple[int, CartLine]]] = {}
        for index, line in enumerate(cart):
            by_name.setdefault(line.name, []).append((index, line))

        results: list[Product | None] = [None] * len(cart)
        limit = asyncio.Semaphore(self._max_concurrency)

        try:
            async with asyncio.TaskGroup() as group:
                for lines in by_name.values():
                    group.create_task(self._stage_product(lines, tx, results, limit))
        except BaseExceptionGroup as group:
            failures = [exc for exc in group.exceptions if isinstance(exc, _LineFailure)]
            if not failures:
                raise
            raise min(failures, key=lambda failure: failure.index) from None

        return [product for product in results if product is not None]

    async def _stage_product(
        self,
        lines: list[tuple[int, CartLine]],
        tx: Transaction,
        results: list[Product | None],
        limit: asyncio.Semaphore,
    ) -> None:
        async with limit:
            for index, line in lines:
                try:
                    results[index] = await self._stage_line(line, tx)
                except Exception as exc:
                    raise _LineFailure(index, line, exc) from exc

    async def _stage_line(self, line: CartLine, tx: Transaction) -> Product:
        product = await self._store.find_one({"name": line.name}, tx)
        if product is None:
            raise ProductNotFoundError(line.name)
        product.ensure_available(line.amount)

        updated = await self._store.conditional_update(
            {"name": line.name, "amount": product.amount},
            {"amount": product.amount - line.amount},
            tx,
        )
        if updated is None:
            raise StockConflictError(line.name, line.amount)
        return updated

    # --- Compensation ---------------------------------------------------------

    async def _abort(self, tx: Transaction) -> None:
        try:
            await self._store.abort(tx)
        except Exception:
            logger.exception("checkout %s: abort failed", tx.id)

    @staticmethod
    def _classify(exc: Exception) -> DomainException:
        if isinstance(exc, (InsufficientStockError, ProductNotFoundError, ValidationError)):
            return exc
        if isinstance(exc, WriteConflictError):
            return StockConflictError(exc.name)
        if isinstance(exc, StoreError):
            return exc
        if isinstance(exc, TimeoutError):
            return StoreError("Product store did not respond in time")
        logger.error("unexpected checkout failure", exc_info=exc)
        return StoreError(f"Unexpected store failure: {exc}")
