"""Identity-keyed upsert stores for canonical products and prices.

Products are keyed by ``productHash`` and inserted once; prices are keyed by
``priceHash`` and overwritten with the incoming USD amount. One ``merge`` call
is one logical batch: it is applied completely or not at all.
"""

from __future__ import annotations

import json
import os
import threading
from abc import ABC, abstractmethod
from copy import deepcopy
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from typing import Any, Iterable, Optional

from pricing_atlas.catalog.errors import StoreError
from pricing_atlas.catalog.schema import Price, Product, to_decimal

STORE_SCHEMA_VERSION = "1.0.0"

_STRING = {"type": "string"}

STORE_DOCUMENT_SCHEMA: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["schema_version", "products", "prices"],
    "properties": {
        "schema_version": _STRING,
        "products": {
            "type": "object",
            "additionalProperties": {
                "type": "object",
                "required": [
                    "productHash",
                    "vendorName",
                    "service",
                    "productFamily",
                    "region",
                    "sku",
                    "attributes",
                ],
                "properties": {
                    "productHash": _STRING,
                    "vendorName": _STRING,
                    "service": _STRING,
                    "productFamily": _STRING,
                    "region": _STRING,
                    "sku": _STRING,
                    "attributes": {"type": "object", "additionalProperties": _STRING},
                },
            },
        },
        "prices": {
            "type": "object",
            "additionalProperties": {
                "type": "object",
                "required": [
                    "priceHash",
                    "productHash",
                    "unit",
                    "purchaseOption",
                    "effectiveDateStart",
                    "USD",
                ],
                "properties": {
                    "priceHash": _STRING,
                    "productHash": _STRING,
                    "unit": _STRING,
                    "purchaseOption": _STRING,
                    "effectiveDateStart": _STRING,
                    "USD": {"type": "string", "pattern": r"^-?[0-9]+(\.[0-9]+)?$"},
                },
            },
        },
    },
}


@dataclass(frozen=True)
class PriceChange:
    price_hash: str
    product_hash: str
    previous_usd: str
    usd: str

    @property
    def change_abs_usd(self) -> Decimal:
        return to_decimal(self.usd) - to_decimal(self.previous_usd)

    @property
    def change_pct(self) -> Optional[Decimal]:
        previous = to_decimal(self.previous_usd)
        if previous == 0:
            return None
        return self.change_abs_usd / previous * 100

    def to_dict(self) -> dict[str, object]:
        pct = self.change_pct
        return {
            "priceHash": self.price_hash,
            "productHash": self.product_hash,
            "previousUSD": self.previous_usd,
            "USD": self.usd,
            "changeAbsUSD": str(self.change_abs_usd),
            "changePct": None if pct is None else float(pct),
        }


@dataclass
class MergeResult:
    products_inserted: int = 0
    products_unchanged: int = 0
    prices_inserted: int = 0
    prices_updated: int = 0
    prices_unchanged: int = 0
    changes: list[PriceChange] = field(default_factory=list)

    @property
    def product_count(self) -> int:
        return self.products_inserted + self.products_unchanged

    @property
    def price_count(self) -> int:
        return self.prices_inserted + self.prices_updated + self.prices_unchanged

    def to_dict(self) -> dict[str, object]:
        return {
            "products_inserted": self.products_inserted,
            "products_unchanged": self.products_unchanged,
            "prices_inserted": self.prices_inserted,
            "prices_updated": self.prices_updated,
            "prices_unchanged": self.prices_unchanged,
            "changes": [change.to_dict() for change in self.changes],
        }


def collapse_batch(products: Iterable[Product]) -> list[Product]:
    """Merge duplicate identities inside one batch.

    Products sharing a hash are folded into the first occurrence; for a price
    hash seen more than once the last price wins. First-seen order is kept.
    """
    order: list[str] = []
    first: dict[str, Product] = {}
    prices: dict[str, dict[str, Price]] = {}
    for product in products:
        key = product.product_hash
        if key not in first:
            order.append(key)
            first[key] = product
            prices[key] = {}
        for price in product.prices:
            prices[key][price.price_hash] = price
    return [first[key].with_prices(prices[key].values()) for key in order]


def product_row(product: Product) -> dict[str, Any]:
    return product.to_dict(include_prices=False)


def price_row(product_hash: str, price: Price) -> dict[str, Any]:
    row = price.to_dict()
    row["productHash"] = product_hash
    return row


def apply_batch(
    products_table: dict[str, dict[str, Any]],
    prices_table: dict[str, dict[str, Any]],
    batch: Iterable[Product],
) -> MergeResult:
    """Upsert ``batch`` into row tables in place and report what changed."""
    result = MergeResult()
    for product in collapse_batch(batch):
        if product.product_hash in products_table:
            result.products_unchanged += 1
        else:
            products_table[product.product_hash] = product_row(product)
            result.products_inserted += 1
        for price in product.prices:
            incoming = price_row(product.product_hash, price)
            existing = prices_table.get(price.price_hash)
            if existing is None:
                result.prices_inserted += 1
            elif existing == incoming:
                result.prices_unchanged += 1
                continue
            else:
                result.prices_updated += 1
                if existing.get("USD") != incoming["USD"]:
                    result.changes.append(
                        PriceChange(
                            price_hash=price.price_hash,
                            product_hash=product.product_hash,
                            previous_usd=str(existing.get("USD")),
                            usd=incoming["USD"],
                        )
                    )
            prices_table[price.price_hash] = incoming
    return result


class UpsertStore(ABC):
    """Keyed store with insert-or-update semantics for products and prices."""

    @abstractmethod
    def merge(self, products: Iterable[Product]) -> MergeResult:
        """Apply one batch of products (with their prices) as a single logical merge."""

    @abstractmethod
    def get_product(self, product_hash: str) -> Optional[dict[str, Any]]:
        """Return the stored product row, or None."""

    @abstractmethod
    def get_price(self, price_hash: str) -> Optional[dict[str, Any]]:
        """Return the stored price row, or None."""

    @abstractmethod
    def prices_for(self, product_hash: str) -> list[dict[str, Any]]:
        """Return the stored price rows owned by a product."""

    @abstractmethod
    def list_products(
        self,
        vendor_name: Optional[str] = None,
        service: Optional[str] = None,
        region: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        """Return stored product rows matching every given filter."""

    @abstractmethod
    def count_products(self) -> int: ...

    @abstractmethod
    def count_prices(self) -> int: ...

    def close(self) -> None:
        return None


def _product_sort_key(row: dict[str, Any]) -> tuple[str, str, str, str, str]:
    return (
        str(row.get("vendorName") or ""),
        str(row.get("service") or ""),
        str(row.get("region") or ""),
        str(row.get("sku") or ""),
        str(row.get("productHash") or ""),
    )


def _price_sort_key(row: dict[str, Any]) -> tuple[str, str, str, str]:
    return (
        str(row.get("unit") or ""),
        str(row.get("purchaseOption") or ""),
        str(row.get("effectiveDateStart") or ""),
        str(row.get("priceHash") or ""),
    )


class InMemoryStore(UpsertStore):
    """Dict-backed store; each merge builds new tables and swaps them in."""

    def __init__(self) -> None:
        self._products: dict[str, dict[str, Any]] = {}
        self._prices: dict[str, dict[str, Any]] = {}
        self._lock = threading.Lock()

    def merge(self, products: Iterable[Product]) -> MergeResult:
        with self._lock:
            products_table = dict(self._products)
            prices_table = dict(self._prices)
            result = apply_batch(products_table, prices_table, products)
            self._commit(products_table, prices_table)
            self._products = products_table
            self._prices = prices_table
        return result

    def _commit(
        self,
        products_table: dict[str, dict[str, Any]],
        prices_table: dict[str, dict[str, Any]],
    ) -> None:
        """Persist new tables before they become visible."""
        return None

    def get_product(self, product_hash: str) -> Optional[dict[str, Any]]:
        row = self._products.get(product_hash)
        return deepcopy(row) if row is not None else None

    def get_price(self, price_hash: str) -> Optional[dict[str, Any]]:
        row = self._prices.get(price_hash)
        return deepcopy(row) if row is not None else None

    def prices_for(self, product_hash: str) -> list[dict[str, Any]]:
        rows = [row for row in self._prices.values() if row["productHash"] == product_hash]
        return deepcopy(sorted(rows, key=_price_sort_key))

    def list_products(
        self,
        vendor_name: Optional[str] = None,
        service: Optional[str] = None,
        region: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        filters = {"vendorName": vendor_name, "service": service, "region": region}
        rows = [
            row
            for row in self._products.values()
            if all(value is None or row.get(key) == value for key, value in filters.items())
        ]
        return deepcopy(sorted(rows, key=_product_sort_key))

    def count_products(self) -> int:
        return len(self._products)

    def count_prices(self) -> int:
        return len(self._prices)


class JsonCatalogStore(InMemoryStore):
    """Single JSON document store, schema-checked on load and replaced atomically on merge."""

    def __init__(self, path: str | Path) -> None:
        super().__init__()
        self.path = Path(path)
        if self.path.exists():
            document = self._load()
            self._products = document["products"]
            self._prices = document["prices"]

    def _load(self) -> dict[str, Any]:
        from jsonschema import Draft202012Validator

        try:
            document = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise StoreError(f"could not read {self.path}: {exc}") from exc
        validator = Draft202012Validator(STORE_DOCUMENT_SCHEMA)
        errors = sorted(validator.iter_errors(document), key=lambda e: list(e.path))
        if errors:
            first = errors[0]
            location = ".".join(str(token) for token in first.path) or "<root>"
            raise StoreError(f"{self.path} failed schema validation at {location}: {first.message}")
        return document

    def _commit(
        self,
        products_table: dict[str, dict[str, Any]],
        prices_table: dict[str, dict[str, Any]],
    ) -> None:
        document = {
            "schema_version": STORE_SCHEMA_VERSION,
            "products": products_table,
            "prices": prices_table,
        }
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            body = json.dumps(document, indent=2, sort_keys=True) + "\n"
            tmp_path.write_text(body, encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as exc:
            tmp_path.unlink(missing_ok=True)
            raise StoreError(f"could not write {self.path}: {exc}") from exc


def open_store(url: str) -> UpsertStore:
    """Open a store from a URL.

    ``memory://`` keeps rows in process, ``json://<path>`` uses a JSON document
    and anything else is treated as a SQLAlchemy database URL.
    """
    if url == "memory://":
        return InMemoryStore()
    if url.startswith("json://"):
        return JsonCatalogStore(url[len("json://") :])
    from pricing_atlas.catalog.sql_store import SqlStore

    return SqlStore(url)
