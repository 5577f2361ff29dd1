"""Application service: Add Product use case."""

from __future__ import annotations

from typing import Any

from catalog.application.dto import ProductDTO
from catalog.application.schemas import parse_product_add
from catalog.domain.model.product import Product
from catalog.domain.repository.product_store import ProductStore


class AddProductHandler:

    def __init__(self, store: ProductStore) -> None:
        self._store = store

    async def handle(self, payload: Any) -> ProductDTO:
        """Add a new product to the catalog.

        Names are unique; adding a second product with the same name is
        rejected by the store.
        """
        data = parse_product_add(payload)
        product = Product.create(
            name=data.name,
            amount=data.amount,
            attributes=data.model_extra,
        )
        saved = await self._store.add(product)
        return ProductDTO.from_domain(saved)
