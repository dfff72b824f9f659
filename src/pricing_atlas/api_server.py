"""Optional read-only FastAPI server over a pricing store."""

from __future__ import annotations

import os
from typing import Optional

from pricing_atlas.api_models import AdapterListResponse, ProductListResponse, ProductOut
from pricing_atlas.catalog.store import UpsertStore, open_store
from pricing_atlas.catalog.vendors import list_adapter_keys
from pricing_atlas.config import IngestSettings


def _product_out(store: UpsertStore, row: dict) -> ProductOut:
    return ProductOut.model_validate({**row, "prices": store.prices_for(row["productHash"])})


def create_app(store: Optional[UpsertStore] = None):
    """Create FastAPI app lazily so base package has no hard FastAPI dependency."""
    try:
        from fastapi import FastAPI, HTTPException
        from fastapi.middleware.cors import CORSMiddleware
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError(
            "FastAPI is not installed. Install with: "
            "pip install 'fastapi>=0.110,<1.0' 'uvicorn>=0.30,<1.0'"
        ) from exc

    from pricing_atlas import __version__

    if store is None:
        store = open_store(IngestSettings.from_env().store_url)

    app = FastAPI(title="PricingAtlas API", version=__version__)

    origins_raw = os.getenv("PRICING_ATLAS_CORS_ORIGINS", "*")
    allow_origins = [origin.strip() for origin in origins_raw.split(",") if origin.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins or ["*"],
        allow_credentials=True,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    @app.get("/healthz")
    def healthz() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/v1/adapters", response_model=AdapterListResponse)
    def adapters() -> AdapterListResponse:
        return AdapterListResponse(adapters=list_adapter_keys())

    @app.get("/api/v1/products", response_model=ProductListResponse)
    def list_products(
        vendor_name: Optional[str] = None,
        service: Optional[str] = None,
        region: Optional[str] = None,
    ) -> ProductListResponse:
        rows = store.list_products(vendor_name=vendor_name, service=service, region=region)
        products = [_product_out(store, row) for row in rows]
        return ProductListResponse(total=len(products), products=products)

    @app.get("/api/v1/products/{product_hash}", response_model=ProductOut)
    def get_product(product_hash: str) -> ProductOut:
        row = store.get_product(product_hash)
        if row is None:
            raise HTTPException(status_code=404, detail=f"unknown product {product_hash}")
        return _product_out(store, row)

    return app
