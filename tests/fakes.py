from __future__ import annotations

import json
from typing import Any

from pricing_atlas.catalog.schema import Product, build_price, build_product, identity_value
from pricing_atlas.catalog.vendors.base import RawDocument, VendorAdapter, entry_scope


class FakeHttp:
    """Stands in for HttpClient: answers GETs from a url -> response table.

    A response may be a payload, an exception to raise, or a callable taking
    the request params.
    """

    def __init__(self, routes: dict[str, Any] | None = None) -> None:
        self.routes = dict(routes or {})
        self.calls: list[tuple[str, dict[str, Any], dict[str, str]]] = []

    def _respond(self, url: str, params: Any, headers: Any) -> Any:
        self.calls.append((url, dict(params or {}), dict(headers or {})))
        if url not in self.routes:
            raise AssertionError(f"unexpected GET {url}")
        response = self.routes[url]
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(dict(params or {}))
        return response

    def get_json(self, url: str, *, params: Any = None, headers: Any = None) -> Any:
        return self._respond(url, params, headers)

    def get_bytes(self, url: str, *, params: Any = None, headers: Any = None) -> bytes:
        payload = self._respond(url, params, headers)
        if isinstance(payload, bytes):
            return payload
        if isinstance(payload, str):
            return payload.encode("utf-8")
        return json.dumps(payload).encode("utf-8")


class StubAdapter(VendorAdapter):
    """Serves ``unit -> rows`` from memory; a unit mapped to an exception raises it on fetch.

    Passing an exception as ``payloads`` makes ``list_units`` raise it.
    """

    def __init__(self, vendor: str, payloads: Any, source: str = "prices") -> None:
        self.vendor = vendor
        self.source = source
        self.payloads = payloads

    def list_units(self, ctx: Any) -> list[str]:
        if isinstance(self.payloads, Exception):
            raise self.payloads
        return list(self.payloads)

    def fetch(self, ctx: Any, unit: str) -> RawDocument:
        payload = self.payloads[unit]
        if isinstance(payload, Exception):
            raise payload
        return self.document(ctx, unit, rows=payload)

    def transform(self, raw: RawDocument) -> list[Product]:
        products = []
        for row in raw.part("rows"):
            with entry_scope("sku", row.get("sku")):
                product = build_product(
                    vendor_name=self.vendor,
                    service="Compute",
                    product_family="Instance",
                    region=raw.unit,
                    sku=identity_value(row["sku"], "sku"),
                    attributes={},
                )
                price = build_price(product, unit="hourly", usd=row["usd"])
            products.append(product.with_prices([price]))
        return products


def rows(*pairs: tuple[str, str]) -> list[dict[str, str]]:
    return [{"sku": sku, "usd": usd} for sku, usd in pairs]
