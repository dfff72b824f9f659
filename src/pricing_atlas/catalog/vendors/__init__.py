"""Vendor adapters for the pricing catalog."""

from pricing_atlas.catalog.vendors.aws_bulk import AwsBulkAdapter
from pricing_atlas.catalog.vendors.aws_spot import AwsSpotAdapter
from pricing_atlas.catalog.vendors.azure_retail import AzureRetailAdapter
from pricing_atlas.catalog.vendors.base import RawDocument, VendorAdapter
from pricing_atlas.catalog.vendors.digitalocean_apps import DigitalOceanAppsAdapter
from pricing_atlas.catalog.vendors.digitalocean_droplets import DigitalOceanDropletsAdapter
from pricing_atlas.catalog.vendors.gcp_catalog import GcpCatalogAdapter
from pricing_atlas.catalog.vendors.gcp_machine_types import GcpMachineTypesAdapter
from pricing_atlas.catalog.vendors.scaleway import ScalewayComputeAdapter


def build_default_adapters() -> list[VendorAdapter]:
    """Return every known adapter in default run order."""
    return [
        AwsBulkAdapter(),
        AwsSpotAdapter(),
        AzureRetailAdapter(),
        GcpCatalogAdapter(),
        GcpMachineTypesAdapter(),
        DigitalOceanDropletsAdapter(),
        DigitalOceanAppsAdapter(),
        ScalewayComputeAdapter(),
    ]


def list_adapter_keys() -> list[str]:
    """Return the ``vendor:source`` key of every known adapter."""
    return [adapter.key for adapter in build_default_adapters()]


__all__ = [
    "AwsBulkAdapter",
    "AwsSpotAdapter",
    "AzureRetailAdapter",
    "DigitalOceanAppsAdapter",
    "DigitalOceanDropletsAdapter",
    "GcpCatalogAdapter",
    "GcpMachineTypesAdapter",
    "RawDocument",
    "ScalewayComputeAdapter",
    "VendorAdapter",
    "build_default_adapters",
    "list_adapter_keys",
]
