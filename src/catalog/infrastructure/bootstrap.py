"""Composition root — wires concrete implementations to domain interfaces.

This is the only place in the codebase that knows about *all* layers.
Every other module depends only on abstractions.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from catalog.domain.repository.product_store import ProductStore
from catalog.infrastructure.config import Settings
from catalog.infrastructure.persistence.json_product_store import JsonProductStore
from catalog.infrastructure.persistence.memory_product_store import InMemoryProductStore
from catalog.infrastructure.persistence.sql_product_store import SqlProductStore

logger = logging.getLogger(__name__)


def product_store(settings: Settings) -> ProductStore:
    if settings.store == "sql":
        return SqlProductStore.from_url(settings.sql_url)
    if settings.store == "memory":
        return InMemoryProductStore()
    return JsonProductStore(settings.products_file)


@asynccontextmanager
async def open_store(settings: Settings) -> AsyncIterator[ProductStore]:
    """Build the configured store, prepare it, and close it on exit."""
    store = product_store(settings)
    logger.debug("using %s", type(store).__name__)
    try:
        if isinstance(store, SqlProductStore):
            if settings.database_url is None:
                settings.data_dir.mkdir(parents=True, exist_ok=True)
            await store.create_schema()
        yield store
    finally:
        await store.close()


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
