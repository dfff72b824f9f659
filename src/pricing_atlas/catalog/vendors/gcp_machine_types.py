"""Google Compute Engine machine types adapter.

Machine types are listed per zone by the Compute API; their hourly price is
derived from the per-vCPU and per-GiB rates that the Billing Catalog publishes
for the machine family in the zone's region.
"""

from __future__ import annotations

import re
from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional

from pricing_atlas.catalog.context import RunContext
from pricing_atlas.catalog.errors import FetchError
from pricing_atlas.catalog.schema import (
    Price,
    Product,
    attribute_value,
    build_price,
    build_product,
    identity_value,
    to_decimal,
)
from pricing_atlas.catalog.vendors.base import RawDocument, VendorAdapter, entry_scope
from pricing_atlas.catalog.vendors.gcp_catalog import PAGE_SIZE, list_paginated, money_to_decimal
from pricing_atlas.config import (
    GCP_BILLING_BASE_URL,
    GCP_COMPUTE_BASE_URL,
    GCP_COMPUTE_ENGINE_SERVICE,
    PURCHASE_OPTION_ON_DEMAND,
    PURCHASE_OPTION_PREEMPTIBLE,
    UNIT_HOURLY,
)

# Machine type prefix -> family label used in Billing Catalog SKU descriptions.
FAMILY_LABELS = {
    "n1": "N1 Predefined Instance",
    "n2": "N2 Instance",
    "n2d": "N2D AMD Instance",
    "e2": "E2 Instance",
    "c2": "Compute optimized",
    "c2d": "C2D AMD Instance",
    "t2d": "T2D AMD Instance",
    "m1": "Memory-optimized Instance",
}

USAGE_TYPES = {
    "OnDemand": PURCHASE_OPTION_ON_DEMAND,
    "Preemptible": PURCHASE_OPTION_PREEMPTIBLE,
}

_RATE_DESCRIPTION = re.compile(
    r"^(?:Spot )?(?:Preemptible )?(?P<family>.+?) (?P<kind>Core|Ram) running in "
)
_MIB_PER_GIB = Decimal(1024)

RateKey = tuple[str, str, str, str]


def zone_region(zone: str) -> str:
    """Return the region of a zone ("us-central1-a" -> "us-central1")."""
    return zone.rsplit("-", 1)[0]


class GcpMachineTypesAdapter(VendorAdapter):
    vendor = "gcp"
    source = "machineTypes"

    def fetch(self, ctx: RunContext, unit: str) -> RawDocument:
        project = self.require(ctx.settings.gcp_project, "GCP_PROJECT")
        token = self.require(ctx.settings.gcp_access_token, "GCP_ACCESS_TOKEN")
        api_key = self.require(ctx.settings.gcp_api_key, "GCP_API_KEY")

        url = f"{GCP_COMPUTE_BASE_URL}/projects/{project}/aggregated/machineTypes"
        ctx.logger.info("Downloading %s", url)
        zones: dict[str, Any] = {}
        page_token = ""
        while True:
            page = ctx.http.get_json(
                url,
                params={"pageToken": page_token},
                headers={"Authorization": f"Bearer {token}"},
            )
            items = page.get("items", {})
            if not isinstance(items, dict):
                raise FetchError(f"unexpected machineTypes listing from {url}")
            zones.update(items)
            page_token = page.get("nextPageToken") or ""
            if not page_token:
                break

        skus_url = f"{GCP_BILLING_BASE_URL}/{GCP_COMPUTE_ENGINE_SERVICE}/skus"
        ctx.logger.info("Downloading %s", skus_url)
        skus = list_paginated(
            ctx,
            skus_url,
            "skus",
            {"key": api_key, "currencyCode": "USD", "pageSize": PAGE_SIZE},
        )
        return self.document(ctx, unit, machine_types=zones, skus=skus)

    def transform(self, raw: RawDocument) -> list[Product]:
        rates = build_rate_table(raw.part("skus"))
        products: list[Product] = []
        zones = raw.part("machine_types")
        for scope in sorted(zones):
            for machine_type in zones[scope].get("machineTypes", []):
                with entry_scope("machine type", machine_type.get("name")):
                    product = _machine_type_product(machine_type, rates)
                if product is not None:
                    products.append(product)
        return products


def build_rate_table(skus: Iterable[Mapping[str, Any]]) -> dict[RateKey, Decimal]:
    """Map (family label, Core|Ram, region, purchase option) to an hourly rate."""
    rates: dict[RateKey, Decimal] = {}
    for sku in skus:
        with entry_scope("sku", sku.get("skuId")):
            _add_sku_rates(rates, sku)
    return rates


def _add_sku_rates(rates: dict[RateKey, Decimal], sku: Mapping[str, Any]) -> None:
    purchase_option = USAGE_TYPES.get(sku["category"].get("usageType", ""))
    match = _RATE_DESCRIPTION.match(str(sku.get("description") or ""))
    if purchase_option is None or match is None:
        return
    pricing = sku.get("pricingInfo") or []
    if not pricing:
        return
    tiers = pricing[0]["pricingExpression"].get("tieredRates") or []
    if not tiers:
        return
    # The last tier is the paid rate; leading tiers can be free allowances.
    rate = money_to_decimal(tiers[-1]["unitPrice"])
    for region in sku.get("serviceRegions", []):
        region = identity_value(region, "serviceRegions")
        rates[(match.group("family"), match.group("kind"), region, purchase_option)] = rate


def _machine_type_product(
    machine_type: Mapping[str, Any],
    rates: Mapping[RateKey, Decimal],
) -> Optional[Product]:
    if machine_type.get("isSharedCpu"):
        return None
    name = identity_value(machine_type["name"], "name")
    label = FAMILY_LABELS.get(name.split("-", 1)[0])
    if label is None:
        return None
    zone = identity_value(machine_type["zone"], "zone")
    region = zone_region(zone)
    cpus = to_decimal(machine_type["guestCpus"])
    memory_gib = to_decimal(machine_type["memoryMb"]) / _MIB_PER_GIB

    product = build_product(
        vendor_name="gcp",
        service="Compute Engine",
        product_family="Compute Instance",
        region=zone,
        sku=f"generated-{name}",
        attributes={
            "machineType": name,
            "cpus": attribute_value(cpus),
            "memory": attribute_value(memory_gib),
        },
    )
    prices: list[Price] = []
    for purchase_option in USAGE_TYPES.values():
        core = rates.get((label, "Core", region, purchase_option))
        ram = rates.get((label, "Ram", region, purchase_option))
        if core is None or ram is None:
            continue
        prices.append(
            build_price(
                product,
                unit=UNIT_HOURLY,
                usd=cpus * core + memory_gib * ram,
                purchase_option=purchase_option,
            )
        )
    if not prices:
        return None
    return product.with_prices(prices)
