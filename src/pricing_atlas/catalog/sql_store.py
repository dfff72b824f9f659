"""SQLAlchemy-backed upsert store (SQLite and PostgreSQL)."""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Optional, Sequence

from sqlalchemy import (
    JSON,
    Column,
    ForeignKey,
    Index,
    MetaData,
    String,
    Table,
    create_engine,
    func,
    select,
)
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from pricing_atlas.catalog.errors import StoreError
from pricing_atlas.catalog.schema import Product
from pricing_atlas.catalog.store import MergeResult, UpsertStore, apply_batch, collapse_batch

logger = logging.getLogger(__name__)

_SELECT_CHUNK = 500
_INSERT_CHUNK = 50

metadata = MetaData()

products_table = Table(
    "products",
    metadata,
    Column("product_hash", String(64), primary_key=True),
    Column("vendor_name", String(64), nullable=False),
    Column("service", String(255), nullable=False),
    Column("product_family", String(255), nullable=False),
    Column("region", String(128), nullable=False),
    Column("sku", String(255), nullable=False),
    Column("attributes", JSON, nullable=False),
    Index("ix_products_vendor_service_region", "vendor_name", "service", "region"),
)

prices_table = Table(
    "prices",
    metadata,
    Column("price_hash", String(64), primary_key=True),
    Column(
        "product_hash",
        String(64),
        ForeignKey("products.product_hash"),
        nullable=False,
        index=True,
    ),
    Column("unit", String(255), nullable=False),
    Column("purchase_option", String(128), nullable=False),
    Column("effective_date_start", String(64), nullable=False),
    Column("usd", String(64), nullable=False),
    Column("start_usage_amount", String(64), nullable=False, default=""),
    Column("end_usage_amount", String(64), nullable=False, default=""),
    Column("term_length", String(64), nullable=False, default=""),
    Column("term_purchase_option", String(64), nullable=False, default=""),
    Column("term_offering_class", String(64), nullable=False, default=""),
    Column("description", String(1024), nullable=False, default=""),
)

PRODUCT_COLUMNS = (
    ("product_hash", "productHash"),
    ("vendor_name", "vendorName"),
    ("service", "service"),
    ("product_family", "productFamily"),
    ("region", "region"),
    ("sku", "sku"),
    ("attributes", "attributes"),
)

PRICE_COLUMNS = (
    ("price_hash", "priceHash"),
    ("product_hash", "productHash"),
    ("unit", "unit"),
    ("purchase_option", "purchaseOption"),
    ("effective_date_start", "effectiveDateStart"),
    ("usd", "USD"),
)

OPTIONAL_PRICE_COLUMNS = (
    ("start_usage_amount", "startUsageAmount"),
    ("end_usage_amount", "endUsageAmount"),
    ("term_length", "termLength"),
    ("term_purchase_option", "termPurchaseOption"),
    ("term_offering_class", "termOfferingClass"),
    ("description", "description"),
)


def _product_row(record: Any) -> dict[str, Any]:
    row = {key: record[column] for column, key in PRODUCT_COLUMNS}
    row["attributes"] = dict(row["attributes"] or {})
    return row


def _price_row(record: Any) -> dict[str, Any]:
    row = {key: record[column] for column, key in PRICE_COLUMNS}
    for column, key in OPTIONAL_PRICE_COLUMNS:
        if record[column]:
            row[key] = record[column]
    return row


def _product_values(row: dict[str, Any]) -> dict[str, Any]:
    return {column: row[key] for column, key in PRODUCT_COLUMNS}


def _price_values(row: dict[str, Any]) -> dict[str, Any]:
    values = {column: row[key] for column, key in PRICE_COLUMNS}
    for column, key in OPTIONAL_PRICE_COLUMNS:
        values[column] = row.get(key, "")
    return values


def _chunks(items: Sequence[Any], size: int) -> Iterable[Sequence[Any]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


class SqlStore(UpsertStore):
    """Products and prices tables with ``ON CONFLICT`` upserts in one transaction per merge."""

    def __init__(self, url: str, engine: Optional[Engine] = None) -> None:
        self.url = url
        try:
            self.engine = engine or create_engine(url)
            if self.engine.dialect.name not in {"sqlite", "postgresql"}:
                raise StoreError(f"unsupported database dialect: {self.engine.dialect.name}")
            metadata.create_all(self.engine)
        except (SQLAlchemyError, ImportError) as exc:
            raise StoreError(f"could not open store {url}: {exc}") from exc
        logger.debug("Opened %s store", self.engine.dialect.name)

    def _insert(self) -> Callable[..., Any]:
        return pg_insert if self.engine.dialect.name == "postgresql" else sqlite_insert

    def merge(self, products: Iterable[Product]) -> MergeResult:
        batch = collapse_batch(products)
        if not batch:
            return MergeResult()
        product_hashes = [product.product_hash for product in batch]
        price_hashes = [price.price_hash for product in batch for price in product.prices]
        try:
            with self.engine.begin() as conn:
                known_products = self._select_existing(
                    conn,
                    products_table,
                    products_table.c.product_hash,
                    product_hashes,
                    _product_row,
                )
                known_prices = self._select_existing(
                    conn, prices_table, prices_table.c.price_hash, price_hashes, _price_row
                )
                existing_keys = set(known_products)
                result = apply_batch(known_products, known_prices, batch)
                new_products = [
                    row for key, row in known_products.items() if key not in existing_keys
                ]
                price_rows = [known_prices[key] for key in dict.fromkeys(price_hashes)]
                self._upsert_products(conn, new_products)
                self._upsert_prices(conn, price_rows)
        except SQLAlchemyError as exc:
            raise StoreError(f"merge into {self.engine.dialect.name} store failed: {exc}") from exc
        return result

    @staticmethod
    def _select_existing(
        conn: Connection,
        table: Table,
        key_column: Any,
        keys: Sequence[str],
        to_row: Callable[[Any], dict[str, Any]],
    ) -> dict[str, dict[str, Any]]:
        found: dict[str, dict[str, Any]] = {}
        unique = list(dict.fromkeys(keys))
        for chunk in _chunks(unique, _SELECT_CHUNK):
            for record in conn.execute(select(table).where(key_column.in_(chunk))).mappings():
                found[record[key_column.name]] = to_row(record)
        return found

    def _upsert_products(self, conn: Connection, rows: list[dict[str, Any]]) -> None:
        insert = self._insert()
        for chunk in _chunks(rows, _INSERT_CHUNK):
            stmt = insert(products_table).values([_product_values(row) for row in chunk])
            conn.execute(stmt.on_conflict_do_nothing(index_elements=["product_hash"]))

    def _upsert_prices(self, conn: Connection, rows: list[dict[str, Any]]) -> None:
        insert = self._insert()
        for chunk in _chunks(rows, _INSERT_CHUNK):
            stmt = insert(prices_table).values([_price_values(row) for row in chunk])
            stmt = stmt.on_conflict_do_update(
                index_elements=["price_hash"],
                set_={
                    column.name: stmt.excluded[column.name]
                    for column in prices_table.columns
                    if column.name != "price_hash"
                },
            )
            conn.execute(stmt)

    def get_product(self, product_hash: str) -> Optional[dict[str, Any]]:
        query = select(products_table).where(products_table.c.product_hash == product_hash)
        record = self._first(query)
        return _product_row(record) if record is not None else None

    def get_price(self, price_hash: str) -> Optional[dict[str, Any]]:
        query = select(prices_table).where(prices_table.c.price_hash == price_hash)
        record = self._first(query)
        return _price_row(record) if record is not None else None

    def prices_for(self, product_hash: str) -> list[dict[str, Any]]:
        c = prices_table.c
        query = (
            select(prices_table)
            .where(c.product_hash == product_hash)
            .order_by(c.unit, c.purchase_option, c.effective_date_start, c.price_hash)
        )
        return [_price_row(record) for record in self._all(query)]

    def list_products(
        self,
        vendor_name: Optional[str] = None,
        service: Optional[str] = None,
        region: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        c = products_table.c
        query = select(products_table)
        if vendor_name is not None:
            query = query.where(c.vendor_name == vendor_name)
        if service is not None:
            query = query.where(c.service == service)
        if region is not None:
            query = query.where(c.region == region)
        query = query.order_by(c.vendor_name, c.service, c.region, c.sku, c.product_hash)
        return [_product_row(record) for record in self._all(query)]

    def count_products(self) -> int:
        return self._count(products_table)

    def count_prices(self) -> int:
        return self._count(prices_table)

    def close(self) -> None:
        self.engine.dispose()

    def _first(self, query: Any) -> Any:
        try:
            with self.engine.connect() as conn:
                return conn.execute(query).mappings().first()
        except SQLAlchemyError as exc:
            raise StoreError(f"query failed: {exc}") from exc

    def _all(self, query: Any) -> list[Any]:
        try:
            with self.engine.connect() as conn:
                return list(conn.execute(query).mappings())
        except SQLAlchemyError as exc:
            raise StoreError(f"query failed: {exc}") from exc

    def _count(self, table: Table) -> int:
        try:
            with self.engine.connect() as conn:
                return int(conn.execute(select(func.count()).select_from(table)).scalar_one())
        except SQLAlchemyError as exc:
            raise StoreError(f"count failed: {exc}") from exc
