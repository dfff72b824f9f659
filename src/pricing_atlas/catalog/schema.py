"""Canonical product and price records shared by every vendor adapter."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping, Optional

from pricing_atlas.catalog.hashing import price_hash, product_hash

TIER_FIELDS = (
    "start_usage_amount",
    "end_usage_amount",
    "term_length",
    "term_purchase_option",
    "term_offering_class",
)


@dataclass(frozen=True)
class Price:
    unit: str
    purchase_option: str
    effective_date_start: str
    usd: str
    price_hash: str
    start_usage_amount: str = ""
    end_usage_amount: str = ""
    term_length: str = ""
    term_purchase_option: str = ""
    term_offering_class: str = ""
    description: str = ""

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "priceHash": self.price_hash,
            "unit": self.unit,
            "purchaseOption": self.purchase_option,
            "effectiveDateStart": self.effective_date_start,
            "USD": self.usd,
        }
        for name, key in (
            ("start_usage_amount", "startUsageAmount"),
            ("end_usage_amount", "endUsageAmount"),
            ("term_length", "termLength"),
            ("term_purchase_option", "termPurchaseOption"),
            ("term_offering_class", "termOfferingClass"),
            ("description", "description"),
        ):
            value = getattr(self, name)
            if value:
                payload[key] = value
        return payload


@dataclass(frozen=True)
class Product:
    vendor_name: str
    service: str
    product_family: str
    region: str
    sku: str
    attributes: Mapping[str, str]
    product_hash: str
    prices: tuple[Price, ...] = field(default_factory=tuple)

    def with_prices(self, prices: Iterable[Price]) -> "Product":
        """Return a copy of this product owning ``prices``."""
        return replace(self, prices=tuple(prices))

    def to_dict(self, include_prices: bool = True) -> dict[str, object]:
        payload: dict[str, object] = {
            "productHash": self.product_hash,
            "vendorName": self.vendor_name,
            "service": self.service,
            "productFamily": self.product_family,
            "region": self.region,
            "sku": self.sku,
            "attributes": dict(self.attributes),
        }
        if include_prices:
            payload["prices"] = [price.to_dict() for price in self.prices]
        return payload


def build_product(
    *,
    vendor_name: str,
    service: str,
    product_family: str,
    region: str,
    sku: str,
    attributes: Mapping[str, str],
) -> Product:
    """Create a product with its hash stamped from the final identity fields."""
    attrs = dict(attributes)
    return Product(
        vendor_name=vendor_name,
        service=service,
        product_family=product_family,
        region=region,
        sku=sku,
        attributes=attrs,
        product_hash=product_hash(vendor_name, service, product_family, region, sku, attrs),
    )


def build_price(
    product: Product | str,
    *,
    unit: str,
    usd: Any,
    purchase_option: str = "",
    effective_date_start: str = "",
    description: str = "",
    **tier: str,
) -> Price:
    """Create a price owned by ``product`` with its hash stamped.

    ``tier`` accepts the names in TIER_FIELDS; they take part in the identity
    when non-empty.
    """
    unknown = set(tier) - set(TIER_FIELDS)
    if unknown:
        raise TypeError(f"unknown tier fields: {', '.join(sorted(unknown))}")
    owner_hash = product if isinstance(product, str) else product.product_hash
    return Price(
        unit=unit,
        purchase_option=purchase_option,
        effective_date_start=effective_date_start,
        usd=format_usd(usd),
        price_hash=price_hash(owner_hash, unit, purchase_option, effective_date_start, tier),
        description=description,
        **tier,
    )


def to_decimal(value: Any) -> Decimal:
    """Parse a vendor number (str, int, float or Decimal) without float round-tripping."""
    if isinstance(value, bool):
        raise ValueError(f"not a number: {value!r}")
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise ValueError(f"not a number: {value!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"not a finite number: {value!r}")
    return amount


def format_usd(value: Any) -> str:
    """Render an amount as a normalized plain decimal string ("6.00" -> "6")."""
    amount = to_decimal(value).normalize()
    if amount == 0:
        return "0"
    return format(amount, "f")


def attribute_value(value: Any) -> str:
    """Stringify a raw vendor field for use as an attribute value."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float, Decimal)):
        return format_usd(value)
    return str(value)


def string_attributes(
    raw: Mapping[str, Any],
    keys: Optional[Iterable[str]] = None,
) -> dict[str, str]:
    """Stringify a raw attribute mapping, optionally limited to ``keys``."""
    names = list(keys) if keys is not None else list(raw)
    return {name: attribute_value(raw.get(name)) for name in names if raw.get(name) is not None}


def identity_value(value: Any, name: str, *, required: bool = True) -> str:
    """Validate a raw vendor field used in a product or price identity.

    Numbers are rendered like attributes. ``None``, containers and (when
    ``required``) empty strings raise ValueError so the entry fails transform.
    """
    if value is None:
        if required:
            raise ValueError(f"{name} is missing")
        return ""
    if isinstance(value, bool) or not isinstance(value, (str, int, float, Decimal)):
        raise ValueError(f"{name} must be a string, got {type(value).__name__}")
    text = value if isinstance(value, str) else attribute_value(value)
    if required and not text.strip():
        raise ValueError(f"{name} is empty")
    return text
