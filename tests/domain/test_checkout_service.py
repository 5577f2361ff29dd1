"""Tests for the CheckoutService domain service."""

import asyncio

import pytest

from catalog.domain.exceptions import (
    CheckoutError,
    ErrorKind,
    InsufficientStockError,
    ProductNotFoundError,
    StockConflictError,
)
from catalog.domain.model.cart import CartLine
from catalog.domain.model.product import Product
from catalog.domain.service.checkout_service import CheckoutService
from catalog.infrastructure.persistence.memory_product_store import InMemoryProductStore
from tests.fakes import (
    FlakyProductStore,
    RacingProductStore,
    RecordingProductStore,
    SlowCommitProductStore,
    StallingProductStore,
)


def _products():
    return [
        Product.create("widget", 10, {"price": "15.00"}),
        Product.create("gadget", 5),
        Product.create("gizmo", 2),
    ]


def _setup(store_cls=RecordingProductStore, **kwargs):
    store = store_cls(_products(), **kwargs)
    return store, CheckoutService(store)


def _stock(store):
    return {p.name: p.amount for p in asyncio.run(store.list_all())}


def _checkout_error(service, cart) -> CheckoutError:
    with pytest.raises(CheckoutError) as info:
        asyncio.run(service.checkout(cart))
    return info.value


INITIAL = {"widget": 10, "gadget": 5, "gizmo": 2}


class TestCheckoutHappyPath:

    def test_decrements_every_line(self):
        store, service = _setup()

        result = asyncio.run(service.checkout([CartLine.of("widget", 3), CartLine.of("gadget", 5)]))

        assert [(p.name, p.amount) for p in result] == [("widget", 7), ("gadget", 0)]
        assert _stock(store) == {"widget": 7, "gadget": 0, "gizmo": 2}

    def test_results_follow_cart_order(self):
        _, service = _setup()

        result = asyncio.run(
            service.checkout([CartLine.of("gizmo", 1), CartLine.of("widget", 1), CartLine.of("gadget", 1)])
        )

        assert [p.name for p in result] == ["gizmo", "widget", "gadget"]

    def test_attributes_survive_checkout(self):
        _, service = _setup()

        [widget] = asyncio.run(service.checkout([CartLine.of("widget", 1)]))

        assert widget.attributes == {"price": "15.00"}

    def test_transaction_committed_not_aborted(self):
        store, service = _setup()

        asyncio.run(service.checkout([CartLine.of("widget", 1)]))

        assert store.committed == store.begun
        assert store.aborted == []

    def test_serialised_fan_out_still_applies_all_lines(self):
        store = InMemoryProductStore(_products())
        service = CheckoutService(store, max_concurrency=1)

        asyncio.run(service.checkout([CartLine.of("widget", 2), CartLine.of("gizmo", 2)]))

        assert _stock(store) == {"widget": 8, "gadget": 5, "gizmo": 0}

    def test_two_line_checkout_then_sold_out(self):
        store, service = _setup()

        result = asyncio.run(service.checkout([CartLine.of("widget", 3), CartLine.of("gadget", 5)]))
        assert {p.name: p.amount for p in result} == {"widget": 7, "gadget": 0}

        error = _checkout_error(service, [CartLine.of("gadget", 1)])
        assert error.kind is ErrorKind.INSUFFICIENT_STOCK
        assert _stock(store)["gadget"] == 0


class TestCheckoutRejections:

    def test_insufficient_stock_changes_nothing(self):
        store, service = _setup()

        error = _checkout_error(service, [CartLine.of("widget", 3), CartLine.of("gadget", 6)])

        assert error.kind is ErrorKind.INSUFFICIENT_STOCK
        assert isinstance(error.reason, InsufficientStockError)
        assert error.reason.requested == 6
        assert error.reason.available == 5
        assert "Insufficient stock for gadget" in error.message
        assert _stock(store) == INITIAL
        assert store.aborted == store.begun
        assert store.committed == []

    def test_unknown_product_changes_nothing(self):
        store, service = _setup()

        error = _checkout_error(service, [CartLine.of("widget", 1), CartLine.of("doohickey", 1)])

        assert error.kind is ErrorKind.PRODUCT_NOT_FOUND
        assert isinstance(error.reason, ProductNotFoundError)
        assert error.reason.name == "doohickey"
        assert _stock(store) == INITIAL

    def test_failure_is_chained_to_line_error(self):
        _, service = _setup()

        error = _checkout_error(service, [CartLine.of("gizmo", 3)])

        assert error.__cause__ is error.reason

    def test_earliest_failing_line_is_reported(self):
        _, service = _setup()

        first = _checkout_error(service, [CartLine.of("gadget", 6), CartLine.of("doohickey", 1)])
        second = _checkout_error(service, [CartLine.of("doohickey", 1), CartLine.of("gadget", 6)])

        assert first.kind is ErrorKind.INSUFFICIENT_STOCK
        assert second.kind is ErrorKind.PRODUCT_NOT_FOUND

    def test_retrying_failed_checkout_fails_the_same_way(self):
        store, service = _setup()
        cart = [CartLine.of("widget", 1), CartLine.of("gizmo", 5)]

        kinds = [_checkout_error(service, cart).kind for _ in range(3)]

        assert kinds == [ErrorKind.INSUFFICIENT_STOCK] * 3
        assert _stock(store) == INITIAL

    def test_empty_cart_rejected(self):
        store, service = _setup()

        error = _checkout_error(service, [])

        assert error.kind is ErrorKind.INVALID_INPUT
        assert store.begun == []


class TestDuplicateLines:
    """Repeated product names are applied cumulatively, in cart order."""

    def test_duplicates_accumulate(self):
        store, service = _setup()

        result = asyncio.run(service.checkout([CartLine.of("widget", 3), CartLine.of("widget", 4)]))

        assert [p.amount for p in result] == [7, 3]
        assert _stock(store)["widget"] == 3

    def test_duplicates_exceeding_stock_together_rejected(self):
        store, service = _setup()

        error = _checkout_error(service, [CartLine.of("widget", 6), CartLine.of("widget", 6)])

        assert error.kind is ErrorKind.INSUFFICIENT_STOCK
        assert error.reason.available == 4
        assert _stock(store) == INITIAL


class TestStoreFailures:

    def test_begin_failure_is_internal(self):
        store, service = _setup(FlakyProductStore, fail_on="begin")

        error = _checkout_error(service, [CartLine.of("widget", 1)])

        assert error.kind is ErrorKind.INTERNAL_FAILURE
        assert _stock(store) == INITIAL

    def test_read_failure_aborts(self):
        store, service = _setup(FlakyProductStore, fail_on="find", fail_name="gadget")

        error = _checkout_error(service, [CartLine.of("widget", 2), CartLine.of("gadget", 1)])

        assert error.kind is ErrorKind.INTERNAL_FAILURE
        assert "connection lost" in error.message
        assert store.aborted == store.begun
        assert _stock(store) == INITIAL

    def test_write_failure_aborts(self):
        store, service = _setup(FlakyProductStore, fail_on="update", fail_name="widget")

        error = _checkout_error(service, [CartLine.of("widget", 2), CartLine.of("gadget", 1)])

        assert error.kind is ErrorKind.INTERNAL_FAILURE
        assert _stock(store) == INITIAL

    def test_commit_failure_aborts(self):
        store, service = _setup(FlakyProductStore, fail_on="commit")

        error = _checkout_error(service, [CartLine.of("widget", 2)])

        assert error.kind is ErrorKind.INTERNAL_FAILURE
        assert store.aborted == store.begun
        assert _stock(store) == INITIAL

    def test_abort_failure_does_not_mask_original_error(self):
        store, service = _setup(FlakyProductStore, fail_on="abort")

        error = _checkout_error(service, [CartLine.of("gizmo", 3)])

        assert error.kind is ErrorKind.INSUFFICIENT_STOCK
        assert _stock(store) == INITIAL

    def test_unresponsive_store_times_out(self):
        store = StallingProductStore(_products(), stall=5.0)
        service = CheckoutService(store, timeout=0.05)

        error = _checkout_error(service, [CartLine.of("widget", 1)])

        assert error.kind is ErrorKind.INTERNAL_FAILURE
        assert store.aborted == store.begun
        assert _stock(store) == INITIAL

    def test_slow_commit_is_not_cut_short_by_timeout(self):
        store = SlowCommitProductStore(_products(), delay=0.2)
        service = CheckoutService(store, timeout=0.05)

        result = asyncio.run(service.checkout([CartLine.of("widget", 2)]))

        assert [p.amount for p in result] == [8]
        assert store.committed == store.begun
        assert store.aborted == []
        assert _stock(store)["widget"] == 8


class TestConcurrentCheckouts:

    def test_stale_read_is_rejected_by_conditional_write(self):
        store, service = _setup(RacingProductStore, competing_amount=8)

        error = _checkout_error(service, [CartLine.of("widget", 5)])

        assert error.kind is ErrorKind.INSUFFICIENT_STOCK
        assert isinstance(error.reason, StockConflictError)
        # only the competing write survived
        assert _stock(store)["widget"] == 8

    def test_last_units_sold_once(self):
        async def scenario():
            store = InMemoryProductStore([Product.create("widget", 3)])
            service = CheckoutService(store)
            cart = [CartLine.of("widget", 3)]
            results = await asyncio.gather(
                service.checkout(cart), service.checkout(cart), return_exceptions=True
            )
            return results, await store.get_by_name("widget")

        results, widget = asyncio.run(scenario())

        successes = [r for r in results if isinstance(r, list)]
        failures = [r for r in results if isinstance(r, CheckoutError)]
        assert len(successes) == 1
        assert len(failures) == 1
        assert failures[0].kind is ErrorKind.INSUFFICIENT_STOCK
        assert widget.amount == 0

    def test_many_buyers_never_oversell(self):
        async def scenario():
            store = InMemoryProductStore([Product.create("widget", 5), Product.create("gadget", 50)])
            service = CheckoutService(store)
            cart = [CartLine.of("widget", 1), CartLine.of("gadget", 1)]
            results = await asyncio.gather(
                *(service.checkout(cart) for _ in range(12)), return_exceptions=True
            )
            return results, await store.list_all()

        results, products = asyncio.run(scenario())
        stock = {p.name: p.amount for p in products}

        successes = [r for r in results if isinstance(r, list)]
        failures = [r for r in results if not isinstance(r, list)]
        assert 1 <= len(successes) <= 5
        assert all(isinstance(f, CheckoutError) for f in failures)
        assert all(f.kind is ErrorKind.INSUFFICIENT_STOCK for f in failures)
        assert stock["widget"] == 5 - len(successes)
        assert stock["gadget"] == 50 - len(successes)
