"""AWS Price List bulk offer files adapter.

Units are offer codes (AmazonEC2, AmazonRDS, ...) so one broken offer file
never blocks the rest.
"""

from __future__ import annotations

from typing import Any, Mapping

from pricing_atlas.catalog.context import RunContext
from pricing_atlas.catalog.schema import (
    Price,
    Product,
    build_price,
    build_product,
    identity_value,
    string_attributes,
)
from pricing_atlas.catalog.vendors.base import RawDocument, VendorAdapter, entry_scope
from pricing_atlas.config import (
    AWS_OFFER_INDEX_PATH,
    AWS_PRICING_BASE_URL,
    PURCHASE_OPTION_ON_DEMAND,
    PURCHASE_OPTION_RESERVED,
)

TERM_PURCHASE_OPTIONS = {
    "OnDemand": PURCHASE_OPTION_ON_DEMAND,
    "Reserved": PURCHASE_OPTION_RESERVED,
}


def offer_url(offer_code: str) -> str:
    return f"{AWS_PRICING_BASE_URL}/offers/v1.0/aws/{offer_code}/current/index.json"


class AwsBulkAdapter(VendorAdapter):
    vendor = "aws"
    source = "bulk"

    def list_units(self, ctx: RunContext) -> list[str]:
        url = f"{AWS_PRICING_BASE_URL}{AWS_OFFER_INDEX_PATH}"
        ctx.logger.info("Downloading %s", url)
        index = ctx.http.get_json(url)
        available = sorted(index.get("offers", {}))
        wanted = set(ctx.settings.aws_offer_codes)
        if not wanted:
            return available
        missing = sorted(wanted - set(available))
        if missing:
            ctx.logger.warning("AWS offer codes not in offer index: %s", ", ".join(missing))
        return [code for code in available if code in wanted]

    def fetch(self, ctx: RunContext, unit: str) -> RawDocument:
        url = offer_url(unit)
        ctx.logger.info("Downloading %s", url)
        return self.document(ctx, unit, offer=ctx.http.get_json(url))

    def transform(self, raw: RawDocument) -> list[Product]:
        offer = raw.part("offer")
        offer_code = str(offer.get("offerCode") or raw.unit)
        terms = offer.get("terms", {})
        products: list[Product] = []
        for sku, entry in offer["products"].items():
            with entry_scope("sku", sku):
                products.append(_offer_product(offer_code, sku, entry, terms))
        return products


def _offer_product(
    offer_code: str, sku: str, entry: Mapping[str, Any], terms: Mapping[str, Any]
) -> Product:
    attributes = string_attributes(entry.get("attributes", {}))
    product = build_product(
        vendor_name="aws",
        service=attributes.get("servicecode") or offer_code,
        product_family=identity_value(entry.get("productFamily"), "productFamily", required=False),
        region=attributes.get("regionCode", ""),
        sku=identity_value(sku, "sku"),
        attributes=attributes,
    )
    prices: list[Price] = []
    for term_type, purchase_option in TERM_PURCHASE_OPTIONS.items():
        for term in terms.get(term_type, {}).get(sku, {}).values():
            prices.extend(_term_prices(product, term, purchase_option))
    return product.with_prices(prices)


def _term_prices(product: Product, term: Mapping[str, Any], purchase_option: str) -> list[Price]:
    term_attributes = term.get("termAttributes") or {}
    prices: list[Price] = []
    for dimension in term["priceDimensions"].values():
        usd = dimension.get("pricePerUnit", {}).get("USD")
        if usd in (None, ""):
            continue
        prices.append(
            build_price(
                product,
                unit=identity_value(dimension["unit"], "unit"),
                usd=usd,
                purchase_option=purchase_option,
                effective_date_start=str(term.get("effectiveDate") or ""),
                description=str(dimension.get("description") or ""),
                start_usage_amount=str(dimension.get("beginRange") or ""),
                end_usage_amount=str(dimension.get("endRange") or ""),
                term_length=str(term_attributes.get("LeaseContractLength") or ""),
                term_purchase_option=str(term_attributes.get("PurchaseOption") or ""),
                term_offering_class=str(term_attributes.get("OfferingClass") or ""),
            )
        )
    return prices
