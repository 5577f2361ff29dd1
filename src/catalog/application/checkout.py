"""Application service: Checkout use case.

Validates the raw cart, then hands the typed cart lines to the
CheckoutService, which owns the transaction and the all-or-nothing rule.
"""

from __future__ import annotations

from typing import Any

from catalog.application.dto import ProductDTO
from catalog.application.schemas import parse_cart
from catalog.domain.repository.product_store import ProductStore
from catalog.domain.service.checkout_service import DEFAULT_MAX_CONCURRENCY, CheckoutService


class CheckoutHandler:

    def __init__(
        self,
        store: ProductStore,
        timeout: float | None = None,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    ) -> None:
        self._service = CheckoutService(store, timeout=timeout, max_concurrency=max_concurrency)

    async def handle(self, raw_cart: Any) -> list[ProductDTO]:
        """Check out a cart given as a list of ``{"name", "amount"}`` mappings.

        Raises ValidationError for a malformed cart (the store is never
        touched) and CheckoutError when the checkout itself fails.
        """
        cart = parse_cart(raw_cart)
        products = await self._service.checkout(cart)
        return [ProductDTO.from_domain(p) for p in products]
