"""Update run: select adapters, then fetch -> transform -> merge every unit."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from http.client import HTTPException
from typing import Iterable, Iterator, Optional, Sequence, Union

from pricing_atlas.api_models import AdapterReport, RunSummary, UnitReport
from pricing_atlas.catalog.context import RunContext
from pricing_atlas.catalog.errors import (
    SHAPE_ERRORS,
    FetchError,
    PricingError,
    StoreError,
    TransformError,
)
from pricing_atlas.catalog.schema import Product
from pricing_atlas.catalog.store import MergeResult, UpsertStore
from pricing_atlas.catalog.vendors import VendorAdapter, build_default_adapters
from pricing_atlas.catalog.vendors.base import RawDocument

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UnitResult:
    """Outcome of one adapter unit."""

    adapter_key: str
    unit: str
    ok: bool
    stage: Optional[str] = None
    error: Optional[str] = None
    merge: Optional[MergeResult] = None

    @classmethod
    def success(cls, adapter_key: str, unit: str, merge: MergeResult) -> "UnitResult":
        return cls(adapter_key=adapter_key, unit=unit, ok=True, merge=merge)

    @classmethod
    def failure(cls, adapter_key: str, unit: str, stage: str, error: str) -> "UnitResult":
        return cls(adapter_key=adapter_key, unit=unit, ok=False, stage=stage, error=error)

    def to_report(self) -> UnitReport:
        merge = self.merge or MergeResult()
        return UnitReport(
            unit=self.unit,
            ok=self.ok,
            stage=self.stage,
            error=self.error,
            product_count=merge.product_count,
            price_count=merge.price_count,
            products_inserted=merge.products_inserted,
            prices_inserted=merge.prices_inserted,
            prices_updated=merge.prices_updated,
            price_changes=len(merge.changes),
        )


def _split_tokens(only: Union[str, Sequence[str], None]) -> set[str]:
    if only is None:
        return set()
    if isinstance(only, str):
        raw = only.split(",")
    else:
        raw = [part for item in only for part in item.split(",")]
    return {token.strip() for token in raw if token.strip()}


def select_adapters(
    only: Union[str, Sequence[str], None] = None,
    adapters: Optional[Iterable[VendorAdapter]] = None,
) -> list[VendorAdapter]:
    """Resolve a ``vendor:source`` filter against the registry, keeping registry order."""
    registry = list(adapters) if adapters is not None else build_default_adapters()
    requested = _split_tokens(only)
    if not requested or "all" in requested:
        return registry
    known = {adapter.key for adapter in registry}
    for token in sorted(requested - known):
        logger.warning("Ignoring unknown adapter %r (known: %s)", token, ", ".join(sorted(known)))
    return [adapter for adapter in registry if adapter.key in requested]


def _fetch_unit(
    ctx: RunContext, adapter: VendorAdapter, unit: str
) -> Union[RawDocument, FetchError]:
    try:
        return adapter.fetch(ctx, unit)
    except FetchError as exc:
        return exc
    except (PricingError, HTTPException, OSError) + SHAPE_ERRORS as exc:
        return FetchError(f"{type(exc).__name__}: {exc}")


def _fetched_units(
    ctx: RunContext,
    adapter: VendorAdapter,
    units: list[str],
) -> Iterator[tuple[str, Union[RawDocument, FetchError]]]:
    workers = min(ctx.settings.max_workers, len(units))
    if workers <= 1:
        for unit in units:
            yield unit, _fetch_unit(ctx, adapter, unit)
        return
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix=adapter.vendor) as pool:
        futures = [(unit, pool.submit(_fetch_unit, ctx, adapter, unit)) for unit in units]
        for unit, future in futures:
            yield unit, future.result()


def _transform_unit(adapter: VendorAdapter, raw: RawDocument) -> list[Product]:
    try:
        return adapter.transform(raw)
    except SHAPE_ERRORS as exc:
        raise TransformError(f"{type(exc).__name__}: {exc}") from exc


def process_unit(
    ctx: RunContext,
    store: UpsertStore,
    adapter: VendorAdapter,
    unit: str,
    fetched: Union[RawDocument, FetchError],
) -> UnitResult:
    """Transform and merge one fetched unit, converting recoverable errors to a failure."""
    key = adapter.key
    if isinstance(fetched, FetchError):
        ctx.logger.error("%s unit=%r fetch failed: %s", key, unit, fetched)
        return UnitResult.failure(key, unit, "fetch", str(fetched))
    try:
        products = _transform_unit(adapter, fetched)
    except TransformError as exc:
        ctx.logger.error(
            "%s unit=%r transform failed on parts %s: %s", key, unit, sorted(fetched.parts), exc
        )
        return UnitResult.failure(key, unit, "transform", str(exc))
    try:
        merged = store.merge(products)
    except StoreError as exc:
        ctx.logger.error("%s unit=%r merge failed: %s", key, unit, exc)
        return UnitResult.failure(key, unit, "merge", str(exc))
    ctx.logger.info(
        "%s unit=%r merged %d products, %d prices (%d new, %d updated)",
        key,
        unit,
        merged.product_count,
        merged.price_count,
        merged.prices_inserted,
        merged.prices_updated,
    )
    return UnitResult.success(key, unit, merged)


def run_adapter(ctx: RunContext, store: UpsertStore, adapter: VendorAdapter) -> list[UnitResult]:
    """Run every unit of one adapter; a failure is confined to its unit."""
    try:
        units = list(adapter.list_units(ctx))
    except (PricingError,) + SHAPE_ERRORS as exc:
        ctx.logger.error("%s could not list units: %s", adapter.key, exc)
        return [UnitResult.failure(adapter.key, "", "list_units", str(exc))]
    ctx.logger.info("%s: %d unit(s)", adapter.key, len(units))
    return [
        process_unit(ctx, store, adapter, unit, fetched)
        for unit, fetched in _fetched_units(ctx, adapter, units)
    ]


def build_adapter_report(adapter_key: str, results: list[UnitResult]) -> AdapterReport:
    units = [result.to_report() for result in results]
    units_ok = sum(1 for report in units if report.ok)
    units_failed = len(units) - units_ok
    if units_failed == 0:
        status = "ok"
    elif units_ok == 0:
        status = "failed"
    else:
        status = "partial"
    return AdapterReport(
        adapter=adapter_key,
        status=status,
        units_ok=units_ok,
        units_failed=units_failed,
        product_count=sum(report.product_count for report in units),
        price_count=sum(report.price_count for report in units),
        products_inserted=sum(report.products_inserted for report in units),
        prices_inserted=sum(report.prices_inserted for report in units),
        prices_updated=sum(report.prices_updated for report in units),
        units=units,
    )


def build_run_summary(
    reports: list[AdapterReport],
    started_at: datetime,
    finished_at: datetime,
) -> RunSummary:
    return RunSummary(
        started_at_utc=started_at.isoformat(),
        finished_at_utc=finished_at.isoformat(),
        adapters_selected=[report.adapter for report in reports],
        adapters_ok=sum(1 for report in reports if report.status == "ok"),
        adapters_partial=sum(1 for report in reports if report.status == "partial"),
        adapters_failed=sum(1 for report in reports if report.status == "failed"),
        product_count=sum(report.product_count for report in reports),
        price_count=sum(report.price_count for report in reports),
        products_inserted=sum(report.products_inserted for report in reports),
        prices_inserted=sum(report.prices_inserted for report in reports),
        prices_updated=sum(report.prices_updated for report in reports),
        adapters=reports,
    )


def run_updates(
    ctx: RunContext,
    store: UpsertStore,
    only: Union[str, Sequence[str], None] = None,
    adapters: Optional[Iterable[VendorAdapter]] = None,
) -> RunSummary:
    """Run the selected adapters one after another and summarize the outcome.

    Fetch, transform and merge failures are recorded per unit; any other
    exception (including HashingError) aborts the run.
    """
    started_at = datetime.now(timezone.utc)
    selected = select_adapters(only, adapters)
    ctx.logger.info("Updating %d adapter(s): %s", len(selected), ", ".join(a.key for a in selected))
    reports = []
    for adapter in selected:
        report = build_adapter_report(adapter.key, run_adapter(ctx, store, adapter))
        log = ctx.logger.info if report.status == "ok" else ctx.logger.warning
        log(
            "%s finished %s: %d/%d units ok",
            adapter.key,
            report.status,
            report.units_ok,
            report.units_ok + report.units_failed,
        )
        reports.append(report)
    return build_run_summary(reports, started_at, datetime.now(timezone.utc))
