"""Integration tests for the product CRUD use cases."""

import asyncio

import pytest

from catalog.application.add_product import AddProductHandler
from catalog.application.delete_product import DeleteProductHandler
from catalog.application.edit_product import EditProductHandler
from catalog.application.show_product import ListProductsHandler, ShowProductHandler
from catalog.domain.exceptions import EntityNotFoundError, ValidationError
from catalog.domain.model.product import Product, new_product_id
from catalog.infrastructure.persistence.memory_product_store import InMemoryProductStore


def _setup():
    widget = Product.create("widget", 10, {"color": "red"})
    store = InMemoryProductStore([widget, Product.create("gadget", 5)])
    return store, widget


class TestAddProduct:

    def test_add_product(self):
        store, _ = _setup()

        dto = asyncio.run(AddProductHandler(store).handle({"name": "gizmo", "amount": 4, "price": "9.99"}))

        assert dto.name == "gizmo"
        assert dto.amount == 4
        assert dto.attributes == {"price": "9.99"}
        assert asyncio.run(store.get_by_id(dto.id)).amount == 4

    def test_amount_defaults_to_zero(self):
        store, _ = _setup()

        dto = asyncio.run(AddProductHandler(store).handle({"name": "gizmo"}))

        assert dto.amount == 0

    def test_duplicate_name_rejected(self):
        store, _ = _setup()

        with pytest.raises(ValidationError, match="already exists"):
            asyncio.run(AddProductHandler(store).handle({"name": "widget", "amount": 1}))

    def test_negative_amount_rejected(self):
        store, _ = _setup()

        with pytest.raises(ValidationError) as info:
            asyncio.run(AddProductHandler(store).handle({"name": "gizmo", "amount": -1}))

        assert info.value.details[0]["field"] == "amount"

    def test_missing_name_rejected(self):
        store, _ = _setup()

        with pytest.raises(ValidationError) as info:
            asyncio.run(AddProductHandler(store).handle({"amount": 1}))

        assert info.value.details[0]["field"] == "name"


class TestShowProducts:

    def test_show_by_id(self):
        store, widget = _setup()

        dto = asyncio.run(ShowProductHandler(store).handle(widget.id))

        assert dto.name == "widget"
        assert dto.attributes == {"color": "red"}

    def test_show_missing_product(self):
        store, _ = _setup()

        with pytest.raises(EntityNotFoundError, match="not found"):
            asyncio.run(ShowProductHandler(store).handle(new_product_id()))

    def test_malformed_id_rejected(self):
        store, _ = _setup()

        with pytest.raises(ValidationError, match="product id not valid"):
            asyncio.run(ShowProductHandler(store).handle("42"))

    def test_list_sorted_by_name(self):
        store, _ = _setup()

        names = [p.name for p in asyncio.run(ListProductsHandler(store).handle())]

        assert names == ["gadget", "widget"]


class TestEditProduct:

    def test_edit_amount(self):
        store, widget = _setup()

        dto = asyncio.run(EditProductHandler(store).handle(widget.id, {"amount": 25}))

        assert dto.amount == 25
        assert dto.attributes == {"color": "red"}

    def test_attributes_are_merged(self):
        store, widget = _setup()

        dto = asyncio.run(EditProductHandler(store).handle(widget.id, {"size": "L"}))

        assert dto.attributes == {"color": "red", "size": "L"}

    def test_rename_to_existing_name_rejected(self):
        store, widget = _setup()

        with pytest.raises(ValidationError, match="already exists"):
            asyncio.run(EditProductHandler(store).handle(widget.id, {"name": "gadget"}))

    def test_empty_edit_rejected(self):
        store, widget = _setup()

        with pytest.raises(ValidationError):
            asyncio.run(EditProductHandler(store).handle(widget.id, {}))

    def test_edit_missing_product(self):
        store, _ = _setup()

        with pytest.raises(EntityNotFoundError):
            asyncio.run(EditProductHandler(store).handle(new_product_id(), {"amount": 1}))


class TestDeleteProduct:

    def test_delete_product(self):
        store, widget = _setup()

        dto = asyncio.run(DeleteProductHandler(store).handle(widget.id))

        assert dto.name == "widget"
        assert asyncio.run(store.get_by_id(widget.id)) is None

    def test_delete_missing_product(self):
        store, _ = _setup()

        with pytest.raises(EntityNotFoundError):
            asyncio.run(DeleteProductHandler(store).handle(new_product_id()))
