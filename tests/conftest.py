from __future__ import annotations

import logging
from typing import Any, Callable

import pytest

from fakes import FakeHttp
from pricing_atlas.catalog.context import RunContext
from pricing_atlas.config import IngestSettings


@pytest.fixture
def make_ctx() -> Callable[..., RunContext]:
    def _make(http: Any = None, **settings: Any) -> RunContext:
        return RunContext(
            settings=IngestSettings(**settings),
            http=http if http is not None else FakeHttp(),
            logger=logging.getLogger("pricing_atlas.tests"),
        )

    return _make
