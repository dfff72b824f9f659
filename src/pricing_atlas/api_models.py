"""Pydantic contracts for run summaries and the read-only catalog API."""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

UnitStage = Literal["list_units", "fetch", "transform", "merge"]
AdapterStatus = Literal["ok", "partial", "failed"]


class UnitReport(BaseModel):
    model_config = ConfigDict(extra="ignore")

    unit: str
    ok: bool
    stage: Optional[UnitStage] = None
    error: Optional[str] = None
    product_count: int = Field(ge=0, default=0)
    price_count: int = Field(ge=0, default=0)
    products_inserted: int = Field(ge=0, default=0)
    prices_inserted: int = Field(ge=0, default=0)
    prices_updated: int = Field(ge=0, default=0)
    price_changes: int = Field(ge=0, default=0)


class AdapterReport(BaseModel):
    model_config = ConfigDict(extra="ignore")

    adapter: str
    status: AdapterStatus
    units_ok: int = Field(ge=0)
    units_failed: int = Field(ge=0)
    product_count: int = Field(ge=0, default=0)
    price_count: int = Field(ge=0, default=0)
    products_inserted: int = Field(ge=0, default=0)
    prices_inserted: int = Field(ge=0, default=0)
    prices_updated: int = Field(ge=0, default=0)
    units: list[UnitReport] = Field(default_factory=list)


class RunSummary(BaseModel):
    model_config = ConfigDict(extra="ignore")

    started_at_utc: str
    finished_at_utc: str
    adapters_selected: list[str] = Field(default_factory=list)
    adapters_ok: int = Field(ge=0, default=0)
    adapters_partial: int = Field(ge=0, default=0)
    adapters_failed: int = Field(ge=0, default=0)
    product_count: int = Field(ge=0, default=0)
    price_count: int = Field(ge=0, default=0)
    products_inserted: int = Field(ge=0, default=0)
    prices_inserted: int = Field(ge=0, default=0)
    prices_updated: int = Field(ge=0, default=0)
    adapters: list[AdapterReport] = Field(default_factory=list)

    @property
    def has_failures(self) -> bool:
        return (self.adapters_partial + self.adapters_failed) > 0

    def adapter(self, key: str) -> Optional[AdapterReport]:
        for report in self.adapters:
            if report.adapter == key:
                return report
        return None


class PriceOut(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    price_hash: str = Field(alias="priceHash")
    unit: str
    purchase_option: str = Field(alias="purchaseOption")
    effective_date_start: str = Field(alias="effectiveDateStart")
    usd: str = Field(alias="USD")
    start_usage_amount: Optional[str] = Field(default=None, alias="startUsageAmount")
    end_usage_amount: Optional[str] = Field(default=None, alias="endUsageAmount")
    term_length: Optional[str] = Field(default=None, alias="termLength")
    term_purchase_option: Optional[str] = Field(default=None, alias="termPurchaseOption")
    term_offering_class: Optional[str] = Field(default=None, alias="termOfferingClass")
    description: Optional[str] = None


class ProductOut(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    product_hash: str = Field(alias="productHash")
    vendor_name: str = Field(alias="vendorName")
    service: str
    product_family: str = Field(alias="productFamily")
    region: str
    sku: str
    attributes: dict[str, str] = Field(default_factory=dict)
    prices: list[PriceOut] = Field(default_factory=list)


class ProductListResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    total: int = Field(ge=0)
    products: list[ProductOut]


class AdapterListResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    adapters: list[str]
