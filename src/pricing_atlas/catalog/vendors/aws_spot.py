"""AWS EC2 Spot price feed adapter.

The public feed is a JSONP document listing current Linux and Windows spot
prices per region and instance size. Sizes quoted as "N/A*" are skipped.
"""

from __future__ import annotations

import json
from typing import Any

from pricing_atlas.catalog.context import RunContext
from pricing_atlas.catalog.errors import FetchError
from pricing_atlas.catalog.schema import (
    Product,
    build_price,
    build_product,
    identity_value,
    to_decimal,
)
from pricing_atlas.catalog.vendors.base import RawDocument, VendorAdapter, entry_scope
from pricing_atlas.config import AWS_SPOT_FEED_URL, PURCHASE_OPTION_SPOT

SPOT_UNIT = "Hrs"

OPERATING_SYSTEMS = {
    "linux": "Linux",
    "mswin": "Windows",
}

# Legacy region names still used by parts of the feed.
REGION_ALIASES = {
    "us-east": "us-east-1",
    "us-west": "us-west-1",
    "eu-ireland": "eu-west-1",
    "apac-sin": "ap-southeast-1",
    "apac-syd": "ap-southeast-2",
    "apac-tokyo": "ap-northeast-1",
}


def decode_jsonp(body: str) -> Any:
    """Strip a ``callback( ... );`` wrapper and decode the JSON inside."""
    start = body.find("(")
    end = body.rfind(")")
    if start == -1 or end <= start:
        raise ValueError("response is not a JSONP document")
    return json.loads(body[start + 1 : end])


class AwsSpotAdapter(VendorAdapter):
    vendor = "aws"
    source = "spot"

    def fetch(self, ctx: RunContext, unit: str) -> RawDocument:
        ctx.logger.info("Downloading %s", AWS_SPOT_FEED_URL)
        body = ctx.http.get_bytes(AWS_SPOT_FEED_URL)
        try:
            feed = decode_jsonp(body.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as exc:
            raise FetchError(f"spot feed could not be decoded: {exc}") from exc
        return self.document(ctx, unit, feed=feed)

    def transform(self, raw: RawDocument) -> list[Product]:
        products: list[Product] = []
        for region_entry in raw.part("feed")["config"]["regions"]:
            with entry_scope("spot region", region_entry.get("region")):
                region = identity_value(region_entry["region"], "region")
                region = REGION_ALIASES.get(region, region)
                sizes = [
                    size
                    for instance_type in region_entry["instanceTypes"]
                    for size in instance_type["sizes"]
                ]
            for size in sizes:
                with entry_scope("instance size", size.get("size")):
                    instance_size = identity_value(size["size"], "size")
                    for column in size["valueColumns"]:
                        product = _spot_product(region, instance_size, column)
                        if product is not None:
                            products.append(product)
        return products


def _spot_product(region: str, instance_size: str, column: dict[str, Any]) -> Product | None:
    operating_system = OPERATING_SYSTEMS.get(column["name"])
    if operating_system is None:
        return None
    try:
        usd = to_decimal(column["prices"]["USD"])
    except ValueError:
        return None
    product = build_product(
        vendor_name="aws",
        service="AmazonEC2",
        product_family="Compute Instance",
        region=region,
        sku=f"generated-spot-{instance_size}-{column['name']}",
        attributes={
            "instanceType": instance_size,
            "operatingSystem": operating_system,
        },
    )
    return product.with_prices(
        [build_price(product, unit=SPOT_UNIT, usd=usd, purchase_option=PURCHASE_OPTION_SPOT)]
    )
