"""DigitalOcean Droplet sizes adapter."""

from __future__ import annotations

from typing import Any

from pricing_atlas.catalog.context import RunContext
from pricing_atlas.catalog.schema import (
    Product,
    attribute_value,
    build_price,
    build_product,
    identity_value,
)
from pricing_atlas.catalog.vendors.base import RawDocument, VendorAdapter, entry_scope
from pricing_atlas.config import DIGITALOCEAN_BASE_URL, UNIT_HOURLY, UNIT_MONTHLY


class DigitalOceanDropletsAdapter(VendorAdapter):
    vendor = "digitalocean"
    source = "droplets"

    def fetch(self, ctx: RunContext, unit: str) -> RawDocument:
        token = self.require(ctx.settings.digitalocean_token, "DIGITALOCEAN_TOKEN")
        url = f"{DIGITALOCEAN_BASE_URL}/sizes"
        ctx.logger.info("Downloading %s", url)
        sizes = ctx.http.get_json(
            url,
            params={"per_page": 250},
            headers={"Authorization": f"Bearer {token}"},
        )
        return self.document(ctx, unit, sizes=sizes)

    def transform(self, raw: RawDocument) -> list[Product]:
        products: list[Product] = []
        for droplet in raw.part("sizes")["sizes"]:
            with entry_scope("droplet size", droplet.get("slug")):
                for region in droplet["regions"]:
                    products.append(_droplet_product(droplet, identity_value(region, "region")))
        return products


def _droplet_product(droplet: dict[str, Any], region: str) -> Product:
    product = build_product(
        vendor_name="digitalocean",
        service="Droplets",
        product_family=identity_value(droplet.get("description"), "description", required=False),
        region=region,
        sku=identity_value(droplet["slug"], "slug"),
        attributes={
            "transfer": attribute_value(droplet["transfer"]),
            "vcpus": attribute_value(droplet["vcpus"]),
            "memory": attribute_value(droplet["memory"]),
            "disk": attribute_value(droplet["disk"]),
        },
    )
    return product.with_prices(
        [
            build_price(product, unit=UNIT_HOURLY, usd=droplet["price_hourly"]),
            build_price(product, unit=UNIT_MONTHLY, usd=droplet["price_monthly"]),
        ]
    )
