"""Canonical encoding and content-addressed identities for products and prices."""

from __future__ import annotations

import hashlib
from typing import Mapping, Optional

from pricing_atlas.catalog.errors import HashingError

_PAIR_SEPARATOR = "&"
_KEY_VALUE_SEPARATOR = "="
_ESCAPE = "\\"


def _escape(token: str) -> str:
    return (
        token.replace(_ESCAPE, _ESCAPE * 2)
        .replace(_PAIR_SEPARATOR, _ESCAPE + _PAIR_SEPARATOR)
        .replace(_KEY_VALUE_SEPARATOR, _ESCAPE + _KEY_VALUE_SEPARATOR)
    )


def canonicalize(attributes: Mapping[str, str]) -> str:
    """Encode an attribute mapping independent of its iteration order.

    Keys are sorted lexicographically and emitted as ``key=value`` pairs joined
    by ``&``. Separators and the escape character are backslash-escaped, so two
    different mappings never share an encoding.
    """
    for key, value in attributes.items():
        if not isinstance(key, str) or not isinstance(value, str):
            raise HashingError(
                f"attribute {key!r} must map str -> str, got "
                f"{type(key).__name__} -> {type(value).__name__}"
            )
    return _PAIR_SEPARATOR.join(
        f"{_escape(key)}{_KEY_VALUE_SEPARATOR}{_escape(attributes[key])}"
        for key in sorted(attributes)
    )


def _digest(*fields: str) -> str:
    hasher = hashlib.sha256()
    for field in fields:
        if not isinstance(field, str):
            raise HashingError(f"identity field must be str, got {type(field).__name__}")
        encoded = field.encode("utf-8")
        # Length prefix keeps ("ab", "c") and ("a", "bc") apart.
        hasher.update(str(len(encoded)).encode("ascii"))
        hasher.update(b":")
        hasher.update(encoded)
    return hasher.hexdigest()


def product_hash(
    vendor_name: str,
    service: str,
    product_family: str,
    region: str,
    sku: str,
    attributes: Mapping[str, str],
) -> str:
    """Return the hex SHA-256 identity of a product."""
    return _digest(vendor_name, service, product_family, region, sku, canonicalize(attributes))


def price_hash(
    product_hash: str,
    unit: str,
    purchase_option: str,
    effective_date_start: str,
    tier: Optional[Mapping[str, str]] = None,
) -> str:
    """Return the hex SHA-256 identity of a price.

    The USD amount is never part of the identity. ``tier`` carries the
    vendor-specific fields (usage range, lease terms) that separate several
    prices sharing unit and purchase option; empty values are dropped, and an
    empty tier hashes exactly like no tier.
    """
    fields = [product_hash, unit, purchase_option, effective_date_start]
    if tier:
        tier_fields = {key: value for key, value in tier.items() if value}
        if tier_fields:
            fields.append(canonicalize(tier_fields))
    return _digest(*fields)
