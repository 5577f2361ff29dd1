"""Application service: Delete Product use case."""

from __future__ import annotations

from typing import Any

from catalog.application.dto import ProductDTO
from catalog.application.schemas import parse_product_id
from catalog.domain.exceptions import EntityNotFoundError
from catalog.domain.repository.product_store import ProductStore


class DeleteProductHandler:

    def __init__(self, store: ProductStore) -> None:
        self._store = store

    async def handle(self, product_id: Any) -> ProductDTO:
        product_id = parse_product_id(product_id)
        removed = await self._store.delete(product_id)
        if removed is None:
            raise EntityNotFoundError(f"Product with ID '{product_id}' not found")
        return ProductDTO.from_domain(removed)
