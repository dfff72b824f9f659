"""Explicit run context handed to adapters and the sync loop."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from pricing_atlas.catalog.errors import FetchError
from pricing_atlas.catalog.http import HttpClient
from pricing_atlas.config import IngestSettings


@dataclass(frozen=True)
class RunContext:
    """Settings, credentials, HTTP client and log sink for one update run."""

    settings: IngestSettings
    http: HttpClient
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("pricing_atlas"))

    @classmethod
    def from_settings(
        cls,
        settings: IngestSettings,
        logger: Optional[logging.Logger] = None,
    ) -> "RunContext":
        http = HttpClient(
            timeout_seconds=settings.http_timeout_sec,
            retry_max=settings.retry_max,
            retry_base_delay=settings.retry_base_delay,
        )
        return cls(
            settings=settings,
            http=http,
            logger=logger or logging.getLogger("pricing_atlas"),
        )

    def stage(self, name: str, payload: Any) -> Optional[Path]:
        """Write a raw payload to the staging directory, if one is configured."""
        if not self.settings.staging_dir:
            return None
        path = Path(self.settings.staging_dir) / f"{name}.json"
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(json.dumps(payload), encoding="utf-8")
        except (OSError, TypeError, ValueError) as exc:
            raise FetchError(f"could not stage {path}: {exc}") from exc
        self.logger.debug("Staged %s", path)
        return path
