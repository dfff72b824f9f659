"""Google Cloud Billing Catalog adapter.

Units are billing services. Each SKU fans out into one product per service
region, with one price per pricing tier.

``effectiveTime`` on a pricing entry is the time the catalog was queried, not
when the rate changed, so it is not used as the price's effective date.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Mapping

from pricing_atlas.catalog.context import RunContext
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
from pricing_atlas.config import GCP_BILLING_BASE_URL

PAGE_SIZE = 5000
_NANOS_PER_UNIT = Decimal(1_000_000_000)


def money_to_decimal(money: Mapping[str, Any]) -> Decimal:
    """Convert a google.type.Money ``{units, nanos}`` object to a Decimal."""
    units = to_decimal(money.get("units") or 0)
    nanos = to_decimal(money.get("nanos") or 0)
    return units + nanos / _NANOS_PER_UNIT


def list_paginated(
    ctx: RunContext,
    url: str,
    items_key: str,
    params: Mapping[str, Any],
) -> list[dict[str, Any]]:
    """Collect every item of a ``nextPageToken`` paginated Google API listing."""
    items: list[dict[str, Any]] = []
    page_token = ""
    while True:
        page = ctx.http.get_json(url, params={**params, "pageToken": page_token})
        items.extend(page.get(items_key, []))
        page_token = page.get("nextPageToken") or ""
        if not page_token:
            return items


class GcpCatalogAdapter(VendorAdapter):
    vendor = "gcp"
    source = "catalog"

    def list_units(self, ctx: RunContext) -> list[str]:
        key = self.require(ctx.settings.gcp_api_key, "GCP_API_KEY")
        url = f"{GCP_BILLING_BASE_URL}/services"
        ctx.logger.info("Downloading %s", url)
        services = list_paginated(ctx, url, "services", {"key": key, "pageSize": PAGE_SIZE})
        return sorted(service["name"] for service in services)

    def fetch(self, ctx: RunContext, unit: str) -> RawDocument:
        key = self.require(ctx.settings.gcp_api_key, "GCP_API_KEY")
        url = f"{GCP_BILLING_BASE_URL}/{unit}/skus"
        ctx.logger.info("Downloading %s", url)
        skus = list_paginated(
            ctx,
            url,
            "skus",
            {"key": key, "currencyCode": "USD", "pageSize": PAGE_SIZE},
        )
        return self.document(ctx, unit, skus=skus)

    def transform(self, raw: RawDocument) -> list[Product]:
        products: list[Product] = []
        for sku in raw.part("skus"):
            with entry_scope("sku", sku.get("skuId")):
                products.extend(_sku_products(sku))
        return products


def _sku_products(sku: Mapping[str, Any]) -> list[Product]:
    category = sku["category"]
    sku_id = identity_value(sku["skuId"], "skuId")
    service = identity_value(category["serviceDisplayName"], "serviceDisplayName")
    family = identity_value(category.get("resourceFamily"), "resourceFamily", required=False)
    regions = [
        identity_value(region, "serviceRegions") for region in sku.get("serviceRegions") or []
    ] or [""]
    products: list[Product] = []
    for region in regions:
        product = build_product(
            vendor_name="gcp",
            service=service,
            product_family=family,
            region=region,
            sku=sku_id,
            attributes={
                "description": attribute_value(sku.get("description")),
                "resourceGroup": attribute_value(category.get("resourceGroup")),
            },
        )
        products.append(product.with_prices(_sku_prices(product, sku)))
    return products


def _sku_prices(product: Product, sku: Mapping[str, Any]) -> list[Price]:
    usage_type = str(sku["category"].get("usageType") or "")
    prices: list[Price] = []
    for pricing_info in sku.get("pricingInfo", []):
        expression = pricing_info["pricingExpression"]
        for tier in expression.get("tieredRates", []):
            prices.append(
                build_price(
                    product,
                    unit=identity_value(expression["usageUnit"], "usageUnit"),
                    usd=money_to_decimal(tier["unitPrice"]),
                    purchase_option=usage_type,
                    description=str(expression.get("usageUnitDescription") or ""),
                    start_usage_amount=attribute_value(tier.get("startUsageAmount", 0)),
                )
            )
    return prices
