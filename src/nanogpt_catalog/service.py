"""
service.py — Public facade tying the catalog core to host collaborators.

Combines:
  • FallbackOrchestrator — category fallback with retries
  • CatalogCache         — TTL cache with single-flight loading
  • compose()            — feature suffix / header / body composition

The host supplies a credential accessor, a configuration provider and a
notifier; the service never reads host state any other way.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional

import httpx

from .cache import CatalogCache
from .composer import compose
from .config import ProviderConfig
from .errors import CatalogCancelledError, CatalogError, MissingCredentialError
from .fetcher import CatalogFetcher
from .models import (
    CatalogResolution,
    ComposedRequest,
    FeatureOverride,
    FeatureToggleSnapshot,
    ModelCategory,
    ModelDescriptor,
    RetryPolicy,
)
from .orchestrator import FallbackOrchestrator
from .ports import (
    ConfigProvider,
    CredentialAccessor,
    EnvCredentialAccessor,
    LoggingNotifier,
    Notifier,
    StaticConfigProvider,
    ensure_credential,
)
from .retry import RetryExecutor

logger = logging.getLogger(__name__)


class CatalogService:
    """
    Discovers NanoGPT models and composes feature-augmented requests.

    Usage::

        service = CatalogService()
        models = await service.resolve_catalog("premium")
        request = service.compose_request("gpt-4o")
        payload = {"model": request.model_id, **request.body_fields}
    """

    def __init__(
        self,
        credentials: Optional[CredentialAccessor] = None,
        config_provider: Optional[ConfigProvider] = None,
        notifier: Optional[Notifier] = None,
        client: Optional[httpx.AsyncClient] = None,
        user_agent: Optional[str] = None,
        policy: Optional[RetryPolicy] = None,
        executor: Optional[RetryExecutor] = None,
        cache: Optional[CatalogCache] = None,
    ) -> None:
        self.credentials: CredentialAccessor = credentials or EnvCredentialAccessor()
        self.config_provider: ConfigProvider = config_provider or StaticConfigProvider()
        self.notifier: Notifier = notifier or LoggingNotifier()
        self.fetcher = CatalogFetcher(client=client, user_agent=user_agent)
        self.orchestrator = FallbackOrchestrator(
            self.fetcher,
            self.notifier,
            executor=executor,
            policy=policy,
        )
        self.cache = cache or CatalogCache()

    # ── Catalog ────────────────────────────────────────────────────────────────

    async def resolve(
        self,
        category: Optional[ModelCategory | str] = None,
        credential: Optional[str] = None,
        cancel: Optional[asyncio.Event] = None,
        force_refresh: bool = False,
    ) -> CatalogResolution:
        """Resolve the catalog, falling back across categories if needed.

        ``category`` defaults to the configured model type; ``credential``
        defaults to the stored one (no prompting).
        """
        if cancel is not None and cancel.is_set():
            raise CatalogCancelledError()
        preferred = ModelCategory(category or self.config_provider.snapshot().model_type)
        if credential is None:
            credential = await ensure_credential(self.credentials, silent=True)
        if not credential:
            raise MissingCredentialError()

        return await self.cache.get_or_load(
            preferred,
            credential,
            lambda: self.orchestrator.resolve(preferred, credential),
            cancel,
            force_refresh=force_refresh,
        )

    async def resolve_catalog(
        self,
        category: Optional[ModelCategory | str] = None,
        credential: Optional[str] = None,
        cancel: Optional[asyncio.Event] = None,
    ) -> List[ModelDescriptor]:
        resolution = await self.resolve(category, credential, cancel)
        return list(resolution.descriptors)

    async def prepare_model_information(
        self,
        silent: bool = True,
        cancel: Optional[asyncio.Event] = None,
    ) -> List[ModelDescriptor]:
        """Model picker entry point: never raises for catalog failures.

        Returns ``[]`` when no credential is available or every catalog
        failed; in the latter case the user is told unless ``silent``.
        """
        credential = await ensure_credential(self.credentials, silent)
        if not credential:
            logger.info("No API key available, returning no models")
            return []
        try:
            return await self.resolve_catalog(None, credential, cancel)
        except CatalogCancelledError:
            logger.debug("Model information request cancelled")
            return []
        except CatalogError as exc:
            logger.error("Failed to prepare model information: %s", exc)
            if not silent:
                self.notifier.inform(
                    f"Unable to load NanoGPT models: {exc}. Please check your API key and try again."
                )
            return []

    # ── Composition ────────────────────────────────────────────────────────────

    def compose_request(
        self,
        base_id: str,
        toggles: Optional[FeatureToggleSnapshot] = None,
        override: Optional[FeatureOverride] = None,
        config: Optional[ProviderConfig] = None,
    ) -> ComposedRequest:
        """Compose against ``toggles`` (default: the config snapshot's).

        A per-model temperature from the snapshot applies unless the
        override carries its own.
        """
        snapshot = config or self.config_provider.snapshot()
        if toggles is None:
            toggles = snapshot.toggles()
        temperature = snapshot.temperature_for(base_id)
        if temperature is not None and (override is None or override.temperature is None):
            override = _with_temperature(override, temperature)
        return compose(base_id, toggles, override)

    # ── Stats ──────────────────────────────────────────────────────────────────

    def get_stats(self) -> Dict[str, Any]:
        return {
            "catalog": self.orchestrator.stats,
            "cache": self.cache.stats,
        }


def _with_temperature(override: Optional[FeatureOverride], temperature: float) -> FeatureOverride:
    return replace(override or FeatureOverride(), temperature=temperature)
