"""Canonical pricing catalog: identities, records, stores and the update run."""

from __future__ import annotations

from pricing_atlas.catalog.context import RunContext
from pricing_atlas.catalog.errors import (
    FetchError,
    HashingError,
    PricingError,
    StoreError,
    TransformError,
)
from pricing_atlas.catalog.hashing import canonicalize, price_hash, product_hash
from pricing_atlas.catalog.schema import Price, Product, build_price, build_product
from pricing_atlas.catalog.store import (
    InMemoryStore,
    JsonCatalogStore,
    MergeResult,
    PriceChange,
    UpsertStore,
    open_store,
)
from pricing_atlas.catalog.sync import UnitResult, run_updates, select_adapters

__all__ = [
    "FetchError",
    "HashingError",
    "InMemoryStore",
    "JsonCatalogStore",
    "MergeResult",
    "Price",
    "PriceChange",
    "PricingError",
    "Product",
    "RunContext",
    "StoreError",
    "TransformError",
    "UnitResult",
    "UpsertStore",
    "build_price",
    "build_product",
    "canonicalize",
    "open_store",
    "price_hash",
    "product_hash",
    "run_updates",
    "select_adapters",
]
