"""
fetcher.py — Fetch and validate one NanoGPT catalog endpoint.

One authenticated GET per call.  Transport failures and non-2xx responses
surface as transient errors for the RetryExecutor; a response that does not
match ``CatalogResponse`` or lists no models is a non-transient error.

Dependencies: httpx (async HTTP), pydantic (response schema)
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence, Union

import httpx
import pydantic

from .config import CLIENT_ID_HEADER, settings
from .errors import EmptyCatalogError, HttpStatusError, NetworkError, ValidationError
from .models import CatalogResponse, EndpointDescriptor, FetchResult, ModelDescriptor
from .normalizer import normalize

logger = logging.getLogger(__name__)


def _format_loc(loc: Sequence[Union[str, int]]) -> str:
    """('data', 3, 'id') -> 'data[3].id'"""
    path = ""
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        else:
            path += f".{part}" if path else str(part)
    return path or "<root>"


def to_validation_error(exc: pydantic.ValidationError) -> ValidationError:
    """Convert a pydantic error into ours, naming the first offending path."""
    first = exc.errors()[0]
    path = _format_loc(first.get("loc", ()))
    expected = first.get("msg", "a valid value")
    return ValidationError(path, expected, f"Invalid API response format from NanoGPT at '{path}': {expected}")


def validate_catalog(raw: Any) -> CatalogResponse:
    try:
        return CatalogResponse.model_validate(raw)
    except pydantic.ValidationError as exc:
        raise to_validation_error(exc) from exc


class CatalogFetcher:
    """
    Usage::

        fetcher = CatalogFetcher(user_agent="my-app/1.0")
        result = await fetcher.fetch(get_endpoint("premium"), api_key)
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        user_agent: Optional[str] = None,
        timeout: Optional[float] = None,
        snippet_length: Optional[int] = None,
    ) -> None:
        self._client = client
        self._user_agent = user_agent or settings.user_agent
        self._timeout = timeout if timeout is not None else settings.discovery_timeout
        self._snippet_length = snippet_length if snippet_length is not None else settings.error_snippet_length

    def build_headers(self, credential: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {credential}",
            CLIENT_ID_HEADER: self._user_agent,
            "Accept": "application/json",
        }

    async def fetch(self, endpoint: EndpointDescriptor, credential: str) -> FetchResult:
        raw = await self._fetch_json(endpoint, credential)
        catalog = validate_catalog(raw)
        if not catalog.data:
            raise EmptyCatalogError(endpoint.category)

        descriptors: List[ModelDescriptor] = []
        seen: set[str] = set()
        degraded = 0
        for index, entry in enumerate(raw["data"]):
            desc = normalize(entry, endpoint.category, index)
            if desc.id in seen:
                logger.debug("Duplicate model id %s in %s catalog ignored", desc.id, endpoint.category.value)
                continue
            seen.add(desc.id)
            if desc.degraded:
                degraded += 1
            descriptors.append(desc)

        logger.debug(
            "Fetched %d models from %s (%d degraded)",
            len(descriptors),
            endpoint.category.value,
            degraded,
        )
        return FetchResult(
            category=endpoint.category,
            descriptors=tuple(descriptors),
            degraded_count=degraded,
        )

    async def _fetch_json(self, endpoint: EndpointDescriptor, credential: str) -> Any:
        headers = self.build_headers(credential)
        try:
            if self._client is not None:
                r = await self._client.get(endpoint.url, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    r = await client.get(endpoint.url, headers=headers)
        except httpx.RequestError as exc:
            raise NetworkError(f"Network error fetching {endpoint.url}: {exc}", endpoint.url) from exc

        if not r.is_success:
            snippet = r.text[: self._snippet_length]
            logger.error(
                "Failed to fetch NanoGPT models from %s: status=%d detail=%s",
                endpoint.category.value,
                r.status_code,
                snippet,
            )
            raise HttpStatusError(r.status_code, snippet, endpoint.url)

        try:
            return r.json()
        except ValueError as exc:
            raise ValidationError(
                "<root>", "a JSON document", "Invalid API response format from NanoGPT: body is not JSON"
            ) from exc
