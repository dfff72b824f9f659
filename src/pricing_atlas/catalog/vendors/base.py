"""Adapter contract between raw vendor documents and canonical products."""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator, Mapping

from pricing_atlas.catalog.context import RunContext
from pricing_atlas.catalog.errors import SHAPE_ERRORS, FetchError, TransformError
from pricing_atlas.catalog.schema import Product


@dataclass(frozen=True)
class RawDocument:
    """Decoded JSON payloads fetched for one adapter unit, keyed by part name."""

    unit: str
    parts: Mapping[str, Any] = field(default_factory=dict)

    def part(self, name: str) -> Any:
        if name not in self.parts:
            raise KeyError(f"raw document for unit {self.unit!r} has no part {name!r}")
        return self.parts[name]


@contextmanager
def entry_scope(kind: str, key: Any) -> Iterator[None]:
    """Tag shape errors raised while mapping one raw entry with that entry's key."""
    try:
        yield
    except SHAPE_ERRORS as exc:
        raise TransformError(f"{kind} {key!r}: {type(exc).__name__}: {exc}") from exc


class VendorAdapter(ABC):
    """One vendor:source integration.

    ``fetch`` is the only I/O boundary. ``transform`` is a pure mapping and
    must not touch the network, disk or shared state.
    """

    vendor: str = ""
    source: str = ""

    @property
    def key(self) -> str:
        return f"{self.vendor}:{self.source}"

    def list_units(self, ctx: RunContext) -> list[str]:
        """Return the independently processed sub-units of one run."""
        return [""]

    @abstractmethod
    def fetch(self, ctx: RunContext, unit: str) -> RawDocument:
        """Download the raw document set for ``unit``."""

    @abstractmethod
    def transform(self, raw: RawDocument) -> list[Product]:
        """Map a raw document set into canonical products with prices."""

    def stage_name(self, unit: str, part: str) -> str:
        tokens = [self.vendor, self.source]
        if unit:
            tokens.append(unit.replace("/", "_"))
        tokens.append(part)
        return "-".join(tokens)

    def document(self, ctx: RunContext, unit: str, **parts: Any) -> RawDocument:
        """Stage every part and wrap them as the unit's raw document."""
        for name, payload in parts.items():
            ctx.stage(self.stage_name(unit, name), payload)
        return RawDocument(unit=unit, parts=parts)

    @staticmethod
    def require(value: str, name: str) -> str:
        """Return a credential or raise FetchError when it is not configured."""
        if not value:
            raise FetchError(f"{name} is not configured")
        return value
