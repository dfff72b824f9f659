"""Azure Retail Prices API adapter.

The API returns flat price items, paginated through ``NextPageLink``. Items
sharing service, family, region, SKU and meter become one product; each item
becomes one of its prices.
"""

from __future__ import annotations

from typing import Any, Iterable

from pricing_atlas.catalog.context import RunContext
from pricing_atlas.catalog.schema import (
    Product,
    attribute_value,
    build_price,
    build_product,
    identity_value,
    string_attributes,
)
from pricing_atlas.catalog.vendors.base import RawDocument, VendorAdapter, entry_scope
from pricing_atlas.config import AZURE_RETAIL_PRICES_URL

API_VERSION = "2023-01-01-preview"

ATTRIBUTE_FIELDS = (
    "productId",
    "productName",
    "skuName",
    "armSkuName",
    "meterId",
    "meterName",
    "serviceId",
)

GroupKey = tuple[str, str, str, str, str]


class AzureRetailAdapter(VendorAdapter):
    vendor = "azure"
    source = "retail"

    def fetch(self, ctx: RunContext, unit: str) -> RawDocument:
        max_pages = ctx.settings.azure_max_pages
        pages: list[Any] = []
        next_url: str | None = AZURE_RETAIL_PRICES_URL
        params: dict[str, str] | None = {
            "api-version": API_VERSION,
            "currencyCode": "USD",
            "$filter": ctx.settings.azure_filter,
        }
        while next_url:
            ctx.logger.info("Downloading %s (page %d)", next_url, len(pages) + 1)
            page = ctx.http.get_json(next_url, params=params)
            pages.append(page)
            # NextPageLink already embeds the query string.
            params = None
            next_url = page.get("NextPageLink")
            if max_pages and len(pages) >= max_pages:
                if next_url:
                    ctx.logger.warning("Stopping Azure download at page cap %d", max_pages)
                break
        return self.document(ctx, unit, pages=pages)

    def transform(self, raw: RawDocument) -> list[Product]:
        groups: dict[GroupKey, list[dict[str, Any]]] = {}
        for item in _items(raw.part("pages")):
            with entry_scope("skuId", item.get("skuId")):
                if item.get("currencyCode", "USD") != "USD":
                    continue
                key = (
                    identity_value(item["serviceName"], "serviceName"),
                    identity_value(item.get("serviceFamily"), "serviceFamily", required=False),
                    identity_value(item.get("armRegionName"), "armRegionName", required=False),
                    identity_value(item["skuId"], "skuId"),
                    identity_value(item.get("meterId"), "meterId", required=False),
                )
            groups.setdefault(key, []).append(item)
        products: list[Product] = []
        for key, items in groups.items():
            with entry_scope("skuId", key[3]):
                products.append(_group_product(key, items))
        return products


def _items(pages: Iterable[Any]) -> Iterable[dict[str, Any]]:
    for page in pages:
        yield from page["Items"]


def _group_product(key: GroupKey, items: list[dict[str, Any]]) -> Product:
    service, family, region, sku, _ = key
    product = build_product(
        vendor_name="azure",
        service=service,
        product_family=family,
        region=region,
        sku=sku,
        attributes=string_attributes(items[0], ATTRIBUTE_FIELDS),
    )
    return product.with_prices(
        [
            build_price(
                product,
                unit=identity_value(item["unitOfMeasure"], "unitOfMeasure"),
                usd=item["unitPrice"],
                purchase_option=str(item.get("type") or ""),
                effective_date_start=str(item.get("effectiveStartDate") or ""),
                start_usage_amount=attribute_value(item.get("tierMinimumUnits")),
                term_length=str(item.get("reservationTerm") or ""),
            )
            for item in items
        ]
    )
