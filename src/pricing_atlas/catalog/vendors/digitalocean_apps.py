"""DigitalOcean App Platform instance sizes adapter.

Instance sizes are priced identically in every App Platform data center, so
each size fans out into one product per data center.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from pricing_atlas.catalog.context import RunContext
from pricing_atlas.catalog.schema import (
    Product,
    attribute_value,
    build_price,
    build_product,
    format_usd,
    identity_value,
    to_decimal,
)
from pricing_atlas.catalog.vendors.base import RawDocument, VendorAdapter, entry_scope
from pricing_atlas.config import DIGITALOCEAN_BASE_URL, SECONDS_PER_HOUR, UNIT_HOURLY, UNIT_MONTHLY

_BYTES_PER_MIB = Decimal(1024 * 1024)

APP_PATHS = (
    ("regions", "/apps/regions"),
    ("instance_sizes", "/apps/tiers/instance_sizes"),
)


class DigitalOceanAppsAdapter(VendorAdapter):
    vendor = "digitalocean"
    source = "apps"

    def fetch(self, ctx: RunContext, unit: str) -> RawDocument:
        token = self.require(ctx.settings.digitalocean_token, "DIGITALOCEAN_TOKEN")
        headers = {"Authorization": f"Bearer {token}"}
        parts: dict[str, Any] = {}
        for part, path in APP_PATHS:
            url = f"{DIGITALOCEAN_BASE_URL}{path}"
            ctx.logger.info("Downloading %s", url)
            parts[part] = ctx.http.get_json(url, headers=headers)
        return self.document(ctx, unit, **parts)

    def transform(self, raw: RawDocument) -> list[Product]:
        region_groups = raw.part("regions")["regions"]
        regions: list[str] = []
        for group in region_groups:
            with entry_scope("app region", group.get("slug")):
                regions.extend(identity_value(dc, "data center") for dc in group["data_centers"])
        products: list[Product] = []
        for instance in raw.part("instance_sizes")["instance_sizes"]:
            with entry_scope("instance size", instance.get("slug")):
                products.extend(_instance_product(instance, region) for region in regions)
        return products


def _instance_product(instance: dict[str, Any], region: str) -> Product:
    memory_mib = to_decimal(instance["memory_bytes"]) / _BYTES_PER_MIB
    attributes = {"cpus": attribute_value(instance["cpus"]), "memory": format_usd(memory_mib)}
    if instance.get("cpu_type"):
        attributes["cpuType"] = str(instance["cpu_type"])
    product = build_product(
        vendor_name="digitalocean",
        service="Apps",
        product_family=identity_value(instance.get("tier_slug"), "tier_slug", required=False),
        region=region,
        sku=identity_value(instance["slug"], "slug"),
        attributes=attributes,
    )
    hourly = to_decimal(instance["usd_per_second"]) * SECONDS_PER_HOUR
    return product.with_prices(
        [
            build_price(product, unit=UNIT_HOURLY, usd=hourly),
            build_price(product, unit=UNIT_MONTHLY, usd=instance["usd_per_month"]),
        ]
    )
