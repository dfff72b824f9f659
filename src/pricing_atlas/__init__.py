"""PricingAtlas: cloud pricing ingestion.

Pulls public price lists from cloud vendors, maps them into canonical
products and prices with content-derived identities, and merges them
idempotently into a keyed store.
"""

from __future__ import annotations

__version__ = "0.1.0"

# Public API exports
from pricing_atlas.api_models import AdapterReport, RunSummary, UnitReport
from pricing_atlas.catalog import (
    FetchError,
    HashingError,
    InMemoryStore,
    JsonCatalogStore,
    MergeResult,
    Price,
    PricingError,
    Product,
    RunContext,
    StoreError,
    TransformError,
    UpsertStore,
    canonicalize,
    open_store,
    price_hash,
    product_hash,
    run_updates,
    select_adapters,
)
from pricing_atlas.config import IngestSettings

__all__ = [
    # Version
    "__version__",
    # Identity
    "canonicalize",
    "product_hash",
    "price_hash",
    # Records
    "Product",
    "Price",
    # Stores
    "UpsertStore",
    "InMemoryStore",
    "JsonCatalogStore",
    "MergeResult",
    "open_store",
    # Update runs
    "IngestSettings",
    "RunContext",
    "select_adapters",
    "run_updates",
    "RunSummary",
    "AdapterReport",
    "UnitReport",
    # Errors
    "PricingError",
    "FetchError",
    "TransformError",
    "StoreError",
    "HashingError",
]
