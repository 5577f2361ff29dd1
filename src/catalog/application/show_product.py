"""Application service: Show / List Products use cases (queries)."""

from __future__ import annotations

from typing import Any

from catalog.application.dto import ProductDTO
from catalog.application.schemas import parse_product_id
from catalog.domain.exceptions import EntityNotFoundError
from catalog.domain.repository.product_store import ProductStore


class ShowProductHandler:

    def __init__(self, store: ProductStore) -> None:
        self._store = store

    async def handle(self, product_id: Any) -> ProductDTO:
        product_id = parse_product_id(product_id)
        product = await self._store.get_by_id(product_id)
        if product is None:
            raise EntityNotFoundError(f"Product with ID '{product_id}' not found")
        return ProductDTO.from_domain(product)


class ListProductsHandler:

    def __init__(self, store: ProductStore) -> None:
        self._store = store

    async def handle(self) -> list[ProductDTO]:
        products = await self._store.list_all()
        return [ProductDTO.from_domain(p) for p in sorted(products, key=lambda p: p.name)]
