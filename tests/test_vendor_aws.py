from __future__ import annotations

import json

import pytest

from pricing_atlas.catalog.errors import FetchError, TransformError
from pricing_atlas.catalog.vendors import AwsBulkAdapter, AwsSpotAdapter
from pricing_atlas.catalog.vendors.aws_bulk import offer_url
from pricing_atlas.catalog.vendors.aws_spot import decode_jsonp
from pricing_atlas.catalog.vendors.base import RawDocument
from pricing_atlas.config import AWS_OFFER_INDEX_PATH, AWS_PRICING_BASE_URL, AWS_SPOT_FEED_URL
from fakes import FakeHttp

EFFECTIVE = "2024-05-01T00:00:00Z"

OFFER = {
    "offerCode": "AmazonEC2",
    "products": {
        "SKU1": {
            "sku": "SKU1",
            "productFamily": "Compute Instance",
            "attributes": {
                "servicecode": "AmazonEC2",
                "regionCode": "us-east-1",
                "instanceType": "t3.micro",
                "vcpu": "2",
            },
        },
        "SKU2": {
            "sku": "SKU2",
            "productFamily": "Data Transfer",
            "attributes": {"servicecode": "AWSDataTransfer", "transferType": "AWS Outbound"},
        },
    },
    "terms": {
        "OnDemand": {
            "SKU1": {
                "SKU1.JRTCKXETXF": {
                    "effectiveDate": EFFECTIVE,
                    "termAttributes": {},
                    "priceDimensions": {
                        "SKU1.JRTCKXETXF.6YS6EN2CT7": {
                            "unit": "Hrs",
                            "description": "$0.0104 per On Demand Linux t3.micro Instance Hour",
                            "beginRange": "0",
                            "endRange": "Inf",
                            "pricePerUnit": {"USD": "0.0104000000"},
                        }
                    },
                }
            },
            "SKU2": {
                "SKU2.JRTCKXETXF": {
                    "effectiveDate": EFFECTIVE,
                    "priceDimensions": {
                        "first": {
                            "unit": "GB",
                            "beginRange": "0",
                            "endRange": "10240",
                            "pricePerUnit": {"USD": "0.09"},
                        },
                        "next": {
                            "unit": "GB",
                            "beginRange": "10240",
                            "endRange": "Inf",
                            "pricePerUnit": {"USD": "0.085"},
                        },
                        "other_currency": {"unit": "GB", "pricePerUnit": {"CNY": "0.6"}},
                    },
                }
            },
        },
        "Reserved": {
            "SKU1": {
                "SKU1.4NA7Y494T4": {
                    "effectiveDate": EFFECTIVE,
                    "termAttributes": {
                        "LeaseContractLength": "1yr",
                        "OfferingClass": "standard",
                        "PurchaseOption": "All Upfront",
                    },
                    "priceDimensions": {
                        "fee": {
                            "unit": "Quantity",
                            "description": "Upfront Fee",
                            "pricePerUnit": {"USD": "62"},
                        },
                        "hours": {
                            "unit": "Hrs",
                            "beginRange": "0",
                            "endRange": "Inf",
                            "pricePerUnit": {"USD": "0.0000000000"},
                        },
                    },
                }
            }
        },
    },
}

SPOT_FEED = {
    "vers": 0.01,
    "config": {
        "rate": "perhr",
        "regions": [
            {
                "region": "us-east",
                "instanceTypes": [
                    {
                        "type": "generalCurrentGen",
                        "sizes": [
                            {
                                "size": "m5.large",
                                "valueColumns": [
                                    {"name": "linux", "prices": {"USD": "0.0371"}},
                                    {"name": "mswin", "prices": {"USD": "N/A*"}},
                                ],
                            }
                        ],
                    }
                ],
            },
            {
                "region": "eu-central-1",
                "instanceTypes": [
                    {
                        "type": "generalCurrentGen",
                        "sizes": [
                            {
                                "size": "m5.large",
                                "valueColumns": [
                                    {"name": "linux", "prices": {"USD": "0.0412"}},
                                    {"name": "unknown-os", "prices": {"USD": "1"}},
                                ],
                            }
                        ],
                    }
                ],
            },
        ],
    },
}


def _transform_offer():
    raw = RawDocument(unit="AmazonEC2", parts={"offer": OFFER})
    return {product.sku: product for product in AwsBulkAdapter().transform(raw)}


def test_bulk_units_follow_offer_index_and_filter(make_ctx) -> None:
    index_url = f"{AWS_PRICING_BASE_URL}{AWS_OFFER_INDEX_PATH}"
    index = {"offers": {"AmazonEC2": {}, "AmazonRDS": {}, "AWSLambda": {}}}
    adapter = AwsBulkAdapter()

    ctx = make_ctx(FakeHttp({index_url: index}))
    assert adapter.list_units(ctx) == ["AWSLambda", "AmazonEC2", "AmazonRDS"]

    ctx = make_ctx(FakeHttp({index_url: index}), aws_offer_codes=["AmazonRDS", "AmazonEC2", "Nope"])
    assert adapter.list_units(ctx) == ["AmazonEC2", "AmazonRDS"]


def test_bulk_fetch_downloads_offer_file(make_ctx) -> None:
    http = FakeHttp({offer_url("AmazonEC2"): OFFER})
    raw = AwsBulkAdapter().fetch(make_ctx(http), "AmazonEC2")
    assert raw.unit == "AmazonEC2"
    assert raw.part("offer") is OFFER


def test_bulk_transform_maps_terms_to_prices() -> None:
    products = _transform_offer()

    instance = products["SKU1"]
    assert instance.service == "AmazonEC2"
    assert instance.product_family == "Compute Instance"
    assert instance.region == "us-east-1"
    assert instance.attributes["instanceType"] == "t3.micro"

    prices = {(p.purchase_option, p.unit): p for p in instance.prices}
    assert set(prices) == {("on_demand", "Hrs"), ("reserved", "Quantity"), ("reserved", "Hrs")}
    on_demand = prices[("on_demand", "Hrs")]
    assert on_demand.usd == "0.0104"
    assert on_demand.effective_date_start == EFFECTIVE
    assert on_demand.start_usage_amount == "0"
    assert on_demand.end_usage_amount == "Inf"
    upfront = prices[("reserved", "Quantity")]
    assert upfront.usd == "62"
    assert upfront.term_length == "1yr"
    assert upfront.term_purchase_option == "All Upfront"
    assert upfront.term_offering_class == "standard"
    assert prices[("reserved", "Hrs")].usd == "0"


def test_bulk_usage_tiers_get_distinct_price_identities() -> None:
    products = _transform_offer()

    transfer = products["SKU2"]
    assert transfer.service == "AWSDataTransfer"
    assert transfer.region == ""
    assert sorted(p.usd for p in transfer.prices) == ["0.085", "0.09"]
    assert len({p.price_hash for p in transfer.prices}) == 2


def test_decode_jsonp() -> None:
    assert decode_jsonp('callback({"a": 1});') == {"a": 1}
    with pytest.raises(ValueError):
        decode_jsonp("plain text")


def test_spot_transform_skips_unpriced_and_unknown_columns() -> None:
    products = AwsSpotAdapter().transform(RawDocument(unit="", parts={"feed": SPOT_FEED}))

    assert [(p.region, p.sku) for p in products] == [
        ("us-east-1", "generated-spot-m5.large-linux"),
        ("eu-central-1", "generated-spot-m5.large-linux"),
    ]
    first = products[0]
    assert first.service == "AmazonEC2"
    assert first.attributes == {"instanceType": "m5.large", "operatingSystem": "Linux"}
    assert [(p.unit, p.purchase_option, p.usd) for p in first.prices] == [("Hrs", "spot", "0.0371")]


def test_spot_fetch_decodes_feed(make_ctx) -> None:
    body = "callback(" + json.dumps(SPOT_FEED) + ");"
    raw = AwsSpotAdapter().fetch(make_ctx(FakeHttp({AWS_SPOT_FEED_URL: body})), "")
    assert raw.part("feed") == SPOT_FEED


def test_spot_fetch_rejects_garbage(make_ctx) -> None:
    with pytest.raises(FetchError, match="spot feed"):
        AwsSpotAdapter().fetch(make_ctx(FakeHttp({AWS_SPOT_FEED_URL: "<html>"})), "")


def _spot_feed_with(size: dict) -> dict:
    region = {"region": "us-east", "instanceTypes": [{"type": "t", "sizes": [size]}]}
    return {"config": {"regions": [region]}}


def test_spot_rejects_null_size_and_names_it() -> None:
    feed = _spot_feed_with({"size": None, "valueColumns": []})
    with pytest.raises(TransformError, match="instance size None: ValueError: size is missing"):
        AwsSpotAdapter().transform(RawDocument(unit="", parts={"feed": feed}))

    feed = _spot_feed_with({"size": "m5.large"})
    with pytest.raises(TransformError, match="'m5.large': KeyError"):
        AwsSpotAdapter().transform(RawDocument(unit="", parts={"feed": feed}))


def test_bulk_rejects_null_price_unit() -> None:
    offer = json.loads(json.dumps(OFFER))
    [term] = offer["terms"]["OnDemand"]["SKU1"].values()
    for dimension in term["priceDimensions"].values():
        dimension["unit"] = None
    raw = RawDocument(unit="AmazonEC2", parts={"offer": offer})
    with pytest.raises(TransformError, match="sku 'SKU1': ValueError: unit is missing"):
        AwsBulkAdapter().transform(raw)
