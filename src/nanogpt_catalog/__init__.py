"""Public package surface for nanogpt_catalog.

Expose the primary entry points used by consumers of the package.
"""

__version__ = "0.1.0"

from nanogpt_catalog.composer import compose
from nanogpt_catalog.config import ENDPOINT_CATALOGUE, ProviderConfig, settings
from nanogpt_catalog.errors import (
    AggregateFetchError,
    CatalogCancelledError,
    CatalogError,
    EmptyCatalogError,
    HttpStatusError,
    MissingCredentialError,
    NetworkError,
    ValidationError,
)
from nanogpt_catalog.models import (
    ComposedRequest,
    FeatureOverride,
    FeatureToggleSnapshot,
    ModelCategory,
    ModelDescriptor,
    RetryPolicy,
)
from nanogpt_catalog.service import CatalogService

__all__ = [
    "ENDPOINT_CATALOGUE",
    "AggregateFetchError",
    "CatalogCancelledError",
    "CatalogError",
    "CatalogService",
    "ComposedRequest",
    "EmptyCatalogError",
    "FeatureOverride",
    "FeatureToggleSnapshot",
    "HttpStatusError",
    "MissingCredentialError",
    "ModelCategory",
    "ModelDescriptor",
    "NetworkError",
    "ProviderConfig",
    "RetryPolicy",
    "ValidationError",
    "__version__",
    "compose",
    "settings",
]
