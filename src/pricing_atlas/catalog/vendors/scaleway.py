"""Scaleway Instances adapter, one unit per availability zone."""

from __future__ import annotations

from typing import Any

from pricing_atlas.catalog.context import RunContext
from pricing_atlas.catalog.schema import Product, build_price, build_product, identity_value
from pricing_atlas.catalog.vendors.base import RawDocument, VendorAdapter, entry_scope
from pricing_atlas.config import SCALEWAY_BASE_URL, UNIT_HOURLY, UNIT_MONTHLY


class ScalewayComputeAdapter(VendorAdapter):
    vendor = "scaleway"
    source = "compute"

    def list_units(self, ctx: RunContext) -> list[str]:
        return list(ctx.settings.scaleway_zones)

    def fetch(self, ctx: RunContext, unit: str) -> RawDocument:
        url = f"{SCALEWAY_BASE_URL}/instance/v1/zones/{unit}/products/servers"
        headers = {}
        if ctx.settings.scaleway_secret_key:
            headers["X-Auth-Token"] = ctx.settings.scaleway_secret_key
        ctx.logger.info("Downloading %s", url)
        return self.document(ctx, unit, servers=ctx.http.get_json(url, headers=headers))

    def transform(self, raw: RawDocument) -> list[Product]:
        zone = identity_value(raw.unit, "zone")
        products: list[Product] = []
        for server_name, server in sorted(raw.part("servers")["servers"].items()):
            with entry_scope("server type", server_name):
                products.append(_server_product(zone, server_name, server))
        return products


def _server_product(zone: str, server_name: str, server: dict[str, Any]) -> Product:
    product = build_product(
        vendor_name="scaleway",
        service="Compute",
        product_family="Instance",
        region=zone,
        sku=f"generated-{identity_value(server_name, 'server type')}",
        attributes={"commercialType": server_name},
    )
    return product.with_prices(
        [
            build_price(product, unit=UNIT_HOURLY, usd=server["hourly_price"]),
            build_price(product, unit=UNIT_MONTHLY, usd=server["monthly_price"]),
        ]
    )
