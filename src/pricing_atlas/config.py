"""Configuration for PricingAtlas ingestion.

This module centralizes vendor endpoints, billing vocabulary and the runtime
settings object passed to every update run.
"""

from __future__ import annotations

import os
from typing import Optional

from pydantic import BaseModel, Field

# Time constants
SECONDS_PER_HOUR = 3_600

# Billing units used by adapters that expose flat hourly/monthly prices
UNIT_HOURLY = "hourly"
UNIT_MONTHLY = "monthly"

# Purchase options ("" means not applicable)
PURCHASE_OPTION_NONE = ""
PURCHASE_OPTION_ON_DEMAND = "on_demand"
PURCHASE_OPTION_RESERVED = "reserved"
PURCHASE_OPTION_SPOT = "spot"
PURCHASE_OPTION_PREEMPTIBLE = "preemptible"

# Vendor endpoints
AWS_PRICING_BASE_URL = "https://pricing.us-east-1.amazonaws.com"
AWS_OFFER_INDEX_PATH = "/offers/v1.0/aws/index.json"
AWS_SPOT_FEED_URL = "https://website.spot.ec2.aws.a2z.com/spot.js"
AZURE_RETAIL_PRICES_URL = "https://prices.azure.com/api/retail/prices"
GCP_BILLING_BASE_URL = "https://cloudbilling.googleapis.com/v1"
GCP_COMPUTE_BASE_URL = "https://compute.googleapis.com/compute/v1"
GCP_COMPUTE_ENGINE_SERVICE = "services/6F81-5844-456A"
DIGITALOCEAN_BASE_URL = "https://api.digitalocean.com/v2"
SCALEWAY_BASE_URL = "https://api.scaleway.com"

DEFAULT_SCALEWAY_ZONES = ("fr-par-1", "fr-par-2", "nl-ams-1", "pl-waw-1")

DEFAULT_STORE_URL = "json://data/pricing_store.json"


def _split_csv(raw: str | None) -> list[str]:
    return [token.strip() for token in (raw or "").split(",") if token.strip()]


# Numeric settings and the environment variables that override them.
_NUMERIC_ENV = {
    "azure_max_pages": "AZURE_RETAIL_MAX_PAGES",
    "http_timeout_sec": "PRICING_HTTP_TIMEOUT_SEC",
    "retry_max": "PRICING_HTTP_RETRY_MAX",
    "retry_base_delay": "PRICING_HTTP_RETRY_BASE_DELAY",
    "max_workers": "PRICING_MAX_WORKERS",
}


class IngestSettings(BaseModel):
    """Runtime settings and vendor credentials for one update run."""

    # Credentials
    digitalocean_token: str = Field(default="", description="DigitalOcean API bearer token")
    scaleway_secret_key: str = Field(default="", description="Scaleway X-Auth-Token (optional)")
    gcp_api_key: str = Field(default="", description="API key for the Cloud Billing Catalog")
    gcp_project: str = Field(default="", description="Project used to list Compute machine types")
    gcp_access_token: str = Field(default="", description="OAuth bearer token for the Compute API")

    # Source scoping
    scaleway_zones: list[str] = Field(default_factory=lambda: list(DEFAULT_SCALEWAY_ZONES))
    aws_offer_codes: list[str] = Field(
        default_factory=list, description="AWS offer codes to ingest, empty = every offer"
    )
    azure_filter: str = Field(default="", description="OData $filter for the Azure retail API")
    azure_max_pages: int = Field(default=0, ge=0, description="Azure page cap, 0 = unlimited")

    # HTTP
    http_timeout_sec: float = Field(default=60.0, gt=0, description="Per-request timeout")
    retry_max: int = Field(default=3, ge=0, description="Retries for transient HTTP failures")
    retry_base_delay: float = Field(default=1.0, ge=0, description="Base delay for backoff")

    # Execution
    max_workers: int = Field(default=1, ge=1, le=32, description="Concurrent unit fetches")
    staging_dir: Optional[str] = Field(default=None, description="Where raw documents are staged")
    store_url: str = Field(default=DEFAULT_STORE_URL, description="Store URL, see open_store()")

    @classmethod
    def from_env(cls) -> "IngestSettings":
        """Load from environment variables.

        Numeric values are passed through as strings and validated by the
        model; a bad value raises ``pydantic.ValidationError``.
        """
        values: dict[str, object] = {
            "digitalocean_token": os.getenv("DIGITALOCEAN_TOKEN", ""),
            "scaleway_secret_key": os.getenv("SCW_SECRET_KEY", ""),
            "gcp_api_key": os.getenv("GCP_API_KEY", ""),
            "gcp_project": os.getenv("GCP_PROJECT", ""),
            "gcp_access_token": os.getenv("GCP_ACCESS_TOKEN", ""),
            "scaleway_zones": _split_csv(os.getenv("SCALEWAY_ZONES"))
            or list(DEFAULT_SCALEWAY_ZONES),
            "aws_offer_codes": _split_csv(os.getenv("AWS_OFFER_CODES")),
            "azure_filter": os.getenv("AZURE_RETAIL_FILTER", ""),
            "staging_dir": os.getenv("PRICING_STAGING_DIR") or None,
            "store_url": os.getenv("PRICING_STORE_URL", DEFAULT_STORE_URL),
        }
        for field_name, env_name in _NUMERIC_ENV.items():
            raw = os.getenv(env_name, "").strip()
            if raw:
                values[field_name] = raw
        return cls.model_validate(values)
