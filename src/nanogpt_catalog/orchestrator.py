"""
orchestrator.py — Resolve a model catalog across NanoGPT endpoint categories.

Decision flow for every resolution:

  1.  Abort immediately if the cancel signal is already set (no network call)
  2.  Try the preferred category through the RetryExecutor
        - network errors / non-2xx → retried within the category
        - validation / empty catalog → not retried, escalate
  3.  On failure, try the remaining categories in CATEGORY_PRIORITY_ORDER,
      each with its own retry budget; stop at the first success
  4.  If a non-preferred category answered, tell the notifier once
  5.  If every category failed, raise AggregateFetchError
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .config import CATEGORY_PRIORITY_ORDER, get_endpoint, settings
from .errors import (
    AggregateFetchError,
    CatalogCancelledError,
    CatalogError,
    ValidationError,
)
from .fetcher import CatalogFetcher
from .models import CatalogResolution, FetchResult, ModelCategory, RetryPolicy
from .ports import Notifier
from .retry import RetryExecutor

logger = logging.getLogger(__name__)


class FallbackOrchestrator:
    """
    Usage::

        orchestrator = FallbackOrchestrator(CatalogFetcher(), LoggingNotifier())
        resolution = await orchestrator.resolve("premium", api_key)
        descriptors, origin = resolution
    """

    def __init__(
        self,
        fetcher: CatalogFetcher,
        notifier: Notifier,
        executor: Optional[RetryExecutor] = None,
        policy: Optional[RetryPolicy] = None,
        priority_order: Optional[Sequence[ModelCategory]] = None,
        escalate_on_validation_error: Optional[bool] = None,
    ) -> None:
        self._fetcher = fetcher
        self._notifier = notifier
        self._executor = executor or RetryExecutor()
        self._policy = policy or settings.retry_policy()
        self._order: Tuple[ModelCategory, ...] = tuple(priority_order or CATEGORY_PRIORITY_ORDER)
        if escalate_on_validation_error is None:
            escalate_on_validation_error = settings.escalate_on_validation_error
        self._escalate_on_validation = escalate_on_validation_error

        # Stats
        self._resolutions = 0
        self._fallbacks = 0
        self._failures = 0
        self._degraded_entries = 0

    def attempt_order(self, preferred: ModelCategory) -> List[ModelCategory]:
        return [preferred] + [c for c in self._order if c is not preferred]

    async def resolve(
        self,
        preferred: ModelCategory | str,
        credential: str,
        cancel: Optional[asyncio.Event] = None,
    ) -> CatalogResolution:
        preferred = ModelCategory(preferred)
        if cancel is not None and cancel.is_set():
            raise CatalogCancelledError()

        errors: List[Tuple[ModelCategory, CatalogError]] = []
        for category in self.attempt_order(preferred):
            try:
                result = await self._attempt(category, credential, cancel)
            except CatalogCancelledError:
                logger.debug("Resolution cancelled while trying %s", category.value)
                raise
            except CatalogError as exc:
                errors.append((category, exc))
                logger.warning("Catalog %s failed: %s", category.value, exc)
                if isinstance(exc, ValidationError) and not self._escalate_on_validation:
                    break
                continue

            if cancel is not None and cancel.is_set():
                raise CatalogCancelledError()
            return self._succeed(result, preferred, errors)

        self._failures += 1
        (_, preferred_error), rest = errors[0], errors[1:]
        logger.warning(
            "All catalogs failed (%s)",
            ", ".join(c.value for c, _ in errors),
        )
        raise AggregateFetchError(preferred, preferred_error, rest)

    async def _attempt(
        self,
        category: ModelCategory,
        credential: str,
        cancel: Optional[asyncio.Event],
    ) -> FetchResult:
        endpoint = get_endpoint(category)
        return await self._executor.execute(
            lambda: self._fetcher.fetch(endpoint, credential),
            self._policy,
            cancel,
        )

    def _succeed(
        self,
        result: FetchResult,
        preferred: ModelCategory,
        errors: List[Tuple[ModelCategory, CatalogError]],
    ) -> CatalogResolution:
        self._resolutions += 1
        self._degraded_entries += result.degraded_count
        if result.degraded_count:
            logger.warning(
                "%d of %d models from %s were listed with defaults",
                result.degraded_count,
                len(result.descriptors),
                result.category.value,
            )
        if result.category is not preferred:
            self._fallbacks += 1
            label = get_endpoint(result.category).display_label
            try:
                self._notifier.inform(
                    f"NanoGPT {preferred.value} models are unavailable; showing {label} instead."
                )
            except Exception:  # pylint: disable=broad-except
                logger.exception("Notifier failed while reporting fallback to %s", result.category.value)
            logger.info("Fell back from %s to %s", preferred.value, result.category.value)
        logger.info(
            "Resolved %d models from %s",
            len(result.descriptors),
            result.category.value,
        )
        return CatalogResolution(
            descriptors=result.descriptors,
            origin=result.category,
            preferred=preferred,
            degraded_count=result.degraded_count,
            failures=tuple(errors),
        )

    @property
    def stats(self) -> Dict[str, Any]:
        return {
            "resolutions": self._resolutions,
            "fallbacks": self._fallbacks,
            "failures": self._failures,
            "degraded_entries": self._degraded_entries,
        }
