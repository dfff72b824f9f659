from __future__ import annotations

import pytest

from pricing_atlas.catalog.errors import TransformError
from pricing_atlas.catalog.vendors import AzureRetailAdapter
from pricing_atlas.catalog.vendors.base import RawDocument
from pricing_atlas.config import AZURE_RETAIL_PRICES_URL
from fakes import FakeHttp

NEXT_PAGE = f"{AZURE_RETAIL_PRICES_URL}?$skip=100"

VM_ITEM = {
    "currencyCode": "USD",
    "tierMinimumUnits": 0.0,
    "retailPrice": 0.096,
    "unitPrice": 0.096,
    "armRegionName": "eastus",
    "location": "US East",
    "effectiveStartDate": "2023-01-01T00:00:00Z",
    "meterId": "meter-d2sv3",
    "meterName": "D2s v3",
    "productId": "DZH318Z0BQ4L",
    "skuId": "DZH318Z0BQ4L/00TG",
    "productName": "Virtual Machines DSv3 Series",
    "skuName": "D2s v3",
    "serviceName": "Virtual Machines",
    "serviceId": "DZH313Z7MMC8",
    "serviceFamily": "Compute",
    "unitOfMeasure": "1 Hour",
    "type": "Consumption",
    "armSkuName": "Standard_D2s_v3",
}

VM_RESERVATION = {
    **VM_ITEM,
    "unitPrice": 500.0,
    "retailPrice": 500.0,
    "type": "Reservation",
    "reservationTerm": "1 Year",
}

STORAGE_ITEMS = [
    {
        "currencyCode": "USD",
        "tierMinimumUnits": tier,
        "unitPrice": price,
        "armRegionName": "westeurope",
        "effectiveStartDate": "2022-06-01T00:00:00Z",
        "meterId": "meter-hot-lrs",
        "meterName": "Hot LRS Data Stored",
        "productId": "DZH318Z0BNVX",
        "skuId": "DZH318Z0BNVX/003J",
        "productName": "Blob Storage",
        "skuName": "Hot LRS",
        "serviceName": "Storage",
        "serviceFamily": "Storage",
        "unitOfMeasure": "1 GB/Month",
        "type": "Consumption",
    }
    for tier, price in ((0.0, 0.0184), (51200.0, 0.0177))
]

EUR_ITEM = {**VM_ITEM, "currencyCode": "EUR", "skuId": "other"}


def test_transform_groups_items_into_products() -> None:
    pages = [
        {"Items": [VM_ITEM, STORAGE_ITEMS[0], EUR_ITEM], "NextPageLink": NEXT_PAGE},
        {"Items": [VM_RESERVATION, STORAGE_ITEMS[1]], "NextPageLink": None},
    ]
    products = AzureRetailAdapter().transform(RawDocument(unit="", parts={"pages": pages}))

    assert [(p.service, p.region, p.sku) for p in products] == [
        ("Virtual Machines", "eastus", "DZH318Z0BQ4L/00TG"),
        ("Storage", "westeurope", "DZH318Z0BNVX/003J"),
    ]
    vm, storage = products
    assert vm.product_family == "Compute"
    assert vm.attributes["armSkuName"] == "Standard_D2s_v3"
    assert vm.attributes["meterName"] == "D2s v3"

    vm_prices = {p.purchase_option: p for p in vm.prices}
    assert vm_prices["Consumption"].usd == "0.096"
    assert vm_prices["Consumption"].unit == "1 Hour"
    assert vm_prices["Consumption"].effective_date_start == "2023-01-01T00:00:00Z"
    assert vm_prices["Reservation"].usd == "500"
    assert vm_prices["Reservation"].term_length == "1 Year"

    assert [(p.start_usage_amount, p.usd) for p in storage.prices] == [
        ("0", "0.0184"),
        ("51200", "0.0177"),
    ]
    assert len({p.price_hash for p in storage.prices}) == 2


def test_fetch_follows_next_page_link(make_ctx) -> None:
    http = FakeHttp(
        {
            AZURE_RETAIL_PRICES_URL: {"Items": [VM_ITEM], "NextPageLink": NEXT_PAGE},
            NEXT_PAGE: {"Items": [VM_RESERVATION], "NextPageLink": None},
        }
    )
    ctx = make_ctx(http, azure_filter="serviceName eq 'Virtual Machines'")
    raw = AzureRetailAdapter().fetch(ctx, "")

    assert len(raw.part("pages")) == 2
    first_url, first_params, _ = http.calls[0]
    assert first_url == AZURE_RETAIL_PRICES_URL
    assert first_params["currencyCode"] == "USD"
    assert first_params["$filter"] == "serviceName eq 'Virtual Machines'"
    assert http.calls[1][:2] == (NEXT_PAGE, {})


def test_fetch_honors_page_cap(make_ctx) -> None:
    http = FakeHttp({AZURE_RETAIL_PRICES_URL: {"Items": [VM_ITEM], "NextPageLink": NEXT_PAGE}})
    raw = AzureRetailAdapter().fetch(make_ctx(http, azure_max_pages=1), "")
    assert len(raw.part("pages")) == 1
    assert len(http.calls) == 1


def test_transform_rejects_null_sku_id() -> None:
    pages = [{"Items": [VM_ITEM, {**VM_ITEM, "skuId": None}]}]
    with pytest.raises(TransformError, match="skuId None: ValueError: skuId is missing"):
        AzureRetailAdapter().transform(RawDocument(unit="", parts={"pages": pages}))


def test_transform_names_item_with_bad_unit() -> None:
    pages = [{"Items": [{**VM_ITEM, "unitOfMeasure": ""}]}]
    with pytest.raises(TransformError, match="'DZH318Z0BQ4L/00TG'.*unitOfMeasure is empty"):
        AzureRetailAdapter().transform(RawDocument(unit="", parts={"pages": pages}))
