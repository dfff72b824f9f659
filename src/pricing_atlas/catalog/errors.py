"""Error taxonomy for pricing ingestion.

FetchError, TransformError and StoreError are isolated per adapter unit by the
sync loop. HashingError signals a broken identity invariant and aborts the run.
"""

from __future__ import annotations


class PricingError(Exception):
    """Base class for pricing ingestion errors."""


class FetchError(PricingError):
    """Raw vendor data could not be retrieved (network, auth, bad response)."""


class TransformError(PricingError):
    """Raw vendor data did not have the expected shape."""


class StoreError(PricingError):
    """A merge into the upsert store failed."""


class HashingError(Exception):
    """Identity fields handed to the hash engine are not canonical strings."""


# Errors raised by malformed vendor payloads.
SHAPE_ERRORS = (KeyError, IndexError, TypeError, ValueError, ArithmeticError, AttributeError)
