from __future__ import annotations

import pytest

from pricing_atlas.catalog.errors import HashingError
from pricing_atlas.catalog.hashing import canonicalize, price_hash, product_hash


def _product_hash(**overrides: object) -> str:
    fields = {
        "vendor_name": "digitalocean",
        "service": "Apps",
        "product_family": "basic",
        "region": "nyc1",
        "sku": "s-1vcpu-1gb",
        "attributes": {"cpus": "1", "memory": "1024"},
    }
    fields.update(overrides)
    return product_hash(**fields)  # type: ignore[arg-type]


def test_canonicalize_sorts_keys() -> None:
    assert canonicalize({"b": "2", "a": "1"}) == "a=1&b=2"
    assert canonicalize({}) == ""


def test_canonicalize_escapes_separators() -> None:
    assert canonicalize({"a": "1&b=2"}) == "a=1\\&b\\=2"
    assert canonicalize({"a": "1&b=2"}) != canonicalize({"a": "1", "b": "2"})
    assert canonicalize({"k\\": "v"}) == "k\\\\=v"


def test_canonicalize_rejects_non_string_values() -> None:
    with pytest.raises(HashingError):
        canonicalize({"cpus": 1})  # type: ignore[dict-item]


def test_product_hash_is_deterministic_and_order_insensitive() -> None:
    first = _product_hash(attributes={"cpus": "1", "memory": "1024"})
    second = _product_hash(attributes={"memory": "1024", "cpus": "1"})
    assert first == second
    assert len(first) == 64
    int(first, 16)


def test_product_hash_changes_with_every_identity_field() -> None:
    base = _product_hash()
    assert _product_hash(region="sfo2") != base
    assert _product_hash(sku="s-2vcpu-2gb") != base
    assert _product_hash(service="Droplets") != base
    assert _product_hash(product_family="") != base
    assert _product_hash(attributes={"cpus": "1", "memory": "2048"}) != base


def test_product_hash_separates_shifted_field_boundaries() -> None:
    assert _product_hash(service="Ap", product_family="psbasic") != _product_hash(
        service="Apps", product_family="basic"
    )


def test_product_hash_rejects_non_string_identity() -> None:
    with pytest.raises(HashingError):
        _product_hash(region=None)


def test_price_hash_excludes_usd_and_tracks_identity_fields() -> None:
    owner = _product_hash()
    hourly = price_hash(owner, "hourly", "", "")
    assert hourly == price_hash(owner, "hourly", "", "")
    assert hourly != price_hash(owner, "monthly", "", "")
    assert hourly != price_hash(owner, "hourly", "spot", "")
    assert hourly != price_hash(owner, "hourly", "", "2024-01-01")
    assert hourly != price_hash(_product_hash(region="sfo2"), "hourly", "", "")


def test_price_hash_empty_tier_matches_no_tier() -> None:
    owner = _product_hash()
    plain = price_hash(owner, "Hrs", "on_demand", "")
    assert price_hash(owner, "Hrs", "on_demand", "", {}) == plain
    assert price_hash(owner, "Hrs", "on_demand", "", {"start_usage_amount": ""}) == plain
    tiered = price_hash(owner, "Hrs", "on_demand", "", {"start_usage_amount": "100"})
    assert tiered != plain
    assert tiered != price_hash(owner, "Hrs", "on_demand", "", {"start_usage_amount": "0"})
