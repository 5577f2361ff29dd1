"""SQLAlchemy (async) implementation of ProductStore.

A transaction owns one database connection. Checkout stages several
lines concurrently on the same transaction, so statements issued
through a transaction are serialised with a per-transaction lock.

The conditional write is a single statement,
``UPDATE products SET amount = :new WHERE name = :name AND amount = :read``,
which touches no row when a concurrent checkout already changed the
stock. How far reads are isolated from concurrent commits depends on the
database; the conditional write is what prevents lost updates.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterator, Mapping
from contextlib import contextmanager
from typing import Any

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    Integer,
    MetaData,
    String,
    Table,
    delete,
    insert,
    select,
    update,
)
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from catalog.domain.exceptions import StoreError, ValidationError
from catalog.domain.model.product import Product
from catalog.domain.repository.product_store import (
    Criteria,
    ProductStore,
    Transaction,
    TransactionState,
    check_changes,
    check_criteria,
)

logger = logging.getLogger(__name__)

metadata = MetaData()

products = Table(
    "products",
    metadata,
    Column("id", String(32), primary_key=True),
    Column("name", String(255), nullable=False, unique=True),
    Column("amount", Integer, nullable=False),
    Column("attributes", JSON, nullable=False, default=dict),
    Column("version", Integer, nullable=False, default=1),
    CheckConstraint("amount >= 0", name="ck_products_amount_non_negative"),
)


@contextmanager
def _store_errors(action: str) -> Iterator[None]:
    try:
        yield
    except IntegrityError as exc:
        raise ValidationError(f"{action} rejected by the database: {exc.orig}") from exc
    except SQLAlchemyError as exc:
        raise StoreError(f"{action} failed: {exc}") from exc


def _where(criteria: Criteria) -> list[Any]:
    check_criteria(criteria)
    return [products.c[key] == value for key, value in criteria.items()]


def _to_domain(row: Any) -> Product:
    return Product(
        id=row.id,
        name=row.name,
        amount=row.amount,
        attributes=dict(row.attributes or {}),
    )


class SqlTransaction(Transaction):

    def __init__(self, connection: AsyncConnection) -> None:
        super().__init__()
        self.connection = connection
        self.lock = asyncio.Lock()


class SqlProductStore(ProductStore):

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine

    @classmethod
    def from_url(cls, url: str, **engine_options: Any) -> SqlProductStore:
        return cls(create_async_engine(url, **engine_options))

    async def create_schema(self) -> None:
        with _store_errors("Schema creation"):
            async with self._engine.begin() as conn:
                await conn.run_sync(metadata.create_all)

    async def close(self) -> None:
        await self._engine.dispose()

    # --- Transactions ---------------------------------------------------------

    async def begin(self) -> SqlTransaction:
        with _store_errors("Begin transaction"):
            connection = await self._engine.connect()
            try:
                await connection.begin()
            except SQLAlchemyError:
                await connection.close()
                raise
        tx = SqlTransaction(connection)
        logger.debug("begin %s", tx.id)
        return tx

    async def find_one(self, criteria: Criteria, tx: Transaction | None = None) -> Product | None:
        stmt = select(products).where(*_where(criteria)).limit(1)
        with _store_errors("Product lookup"):
            if tx is None:
                async with self._engine.connect() as conn:
                    row = (await conn.execute(stmt)).first()
            else:

                async def lookup(conn: AsyncConnection) -> Any:
                    return (await conn.execute(stmt)).first()

                row = await self._in_transaction(self._as_sql(tx), lookup)
        return _to_domain(row) if row is not None else None

    async def conditional_update(
        self,
        criteria: Criteria,
        changes: Mapping[str, Any],
        tx: Transaction,
    ) -> Product | None:
        check_changes(changes)
        stmt = (
            update(products)
            .where(*_where(criteria))
            .values(**changes, version=products.c.version + 1)
        )
        after = {key: changes.get(key, value) for key, value in criteria.items()}

        async def write(conn: AsyncConnection) -> Any:
            result = await conn.execute(stmt)
            if result.rowcount != 1:
                return None
            return (await conn.execute(select(products).where(*_where(after)))).first()

        with _store_errors("Conditional update"):
            row = await self._in_transaction(self._as_sql(tx), write)
        return _to_domain(row) if row is not None else None

    async def commit(self, tx: Transaction) -> None:
        stx = self._as_sql(tx)
        async with stx.lock:
            stx.ensure_active()
            with _store_errors("Commit"):
                await stx.connection.commit()
            stx.state = TransactionState.COMMITTED
            await self._release(stx)
        logger.debug("commit %s", stx.id)

    async def abort(self, tx: Transaction) -> None:
        stx = self._as_sql(tx)
        async with stx.lock:
            if not stx.active:
                return
            stx.state = TransactionState.ABORTED
            try:
                with _store_errors("Rollback"):
                    await stx.connection.rollback()
            finally:
                await self._release(stx)
        logger.debug("abort %s", stx.id)

    # --- Catalog CRUD ---------------------------------------------------------

    async def list_all(self) -> list[Product]:
        with _store_errors("Product listing"):
            async with self._engine.connect() as conn:
                rows = (await conn.execute(select(products).order_by(products.c.name))).all()
        return [_to_domain(row) for row in rows]

    async def add(self, product: Product) -> Product:
        if await self.get_by_name(product.name) is not None:
            raise ValidationError(f"Product '{product.name}' already exists")
        with _store_errors("Product insert"):
            async with self._engine.begin() as conn:
                await conn.execute(
                    insert(products).values(
                        id=product.id,
                        name=product.name,
                        amount=product.amount,
                        attributes=product.attributes,
                        version=1,
                    )
                )
        return product

    async def update(self, product_id: str, changes: Mapping[str, Any]) -> Product | None:
        check_changes(changes)
        if not changes:
            return await self.get_by_id(product_id)
        with _store_errors("Product update"):
            async with self._engine.begin() as conn:
                result = await conn.execute(
                    update(products)
                    .where(products.c.id == product_id)
                    .values(**changes, version=products.c.version + 1)
                )
                if result.rowcount != 1:
                    return None
                row = (await conn.execute(select(products).where(products.c.id == product_id))).first()
        return _to_domain(row) if row is not None else None

    async def delete(self, product_id: str) -> Product | None:
        with _store_errors("Product delete"):
            async with self._engine.begin() as conn:
                row = (await conn.execute(select(products).where(products.c.id == product_id))).first()
                if row is None:
                    return None
                await conn.execute(delete(products).where(products.c.id == product_id))
        return _to_domain(row)

    # --- Helpers --------------------------------------------------------------

    @staticmethod
    async def _in_transaction(
        stx: SqlTransaction,
        work: Callable[[AsyncConnection], Awaitable[Any]],
    ) -> Any:
        """Run *work* on the transaction's connection, one statement batch at a time.

        Shielded: a cancelled caller (a sibling line failed) lets the batch
        finish instead of leaving the connection mid-statement.
        """

        async def guarded() -> Any:
            async with stx.lock:
                stx.ensure_active()
                return await work(stx.connection)

        return await asyncio.shield(guarded())

    @staticmethod
    async def _release(stx: SqlTransaction) -> None:
        with _store_errors("Connection close"):
            await stx.connection.close()

    @staticmethod
    def _as_sql(tx: Transaction) -> SqlTransaction:
        if not isinstance(tx, SqlTransaction):
            raise TypeError(f"Expected a SqlTransaction, got {type(tx).__name__}")
        return tx
