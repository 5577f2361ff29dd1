"""Application service: Edit Product use case."""

from __future__ import annotations

from typing import Any

from catalog.application.dto import ProductDTO
from catalog.application.schemas import parse_product_edit, parse_product_id
from catalog.domain.exceptions import EntityNotFoundError
from catalog.domain.repository.product_store import ProductStore


class EditProductHandler:

    def __init__(self, store: ProductStore) -> None:
        self._store = store

    async def handle(self, product_id: Any, payload: Any) -> ProductDTO:
        """Change a product's name, stock or attributes.

        Attributes are merged: fields not mentioned in the payload keep
        their current value.
        """
        product_id = parse_product_id(product_id)
        data = parse_product_edit(payload)

        current = await self._store.get_by_id(product_id)
        if current is None:
            raise EntityNotFoundError(f"Product with ID '{product_id}' not found")

        changes: dict[str, Any] = {}
        if data.name is not None:
            changes["name"] = data.name
        if data.amount is not None:
            changes["amount"] = data.amount
        if data.model_extra:
            changes["attributes"] = {**current.attributes, **data.model_extra}

        updated = await self._store.update(product_id, changes)
        if updated is None:
            raise EntityNotFoundError(f"Product with ID '{product_id}' not found")
        return ProductDTO.from_domain(updated)
