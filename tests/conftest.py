"""Shared fixtures: a fake NanoGPT upstream and a back-off recorder."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

import httpx
import pytest

from nanogpt_catalog.config import get_endpoint
from nanogpt_catalog.models import ModelCategory, RetryPolicy


def catalog_payload(*model_ids: str, **fields: Any) -> Dict[str, Any]:
    """Minimal valid catalog listing ``model_ids`` (extra fields on every entry)."""
    return {
        "object": "list",
        "data": [{"id": mid, "object": "model", **fields} for mid in model_ids],
    }


class FakeUpstream:
    """
    Routes requests to per-category scripted responses.

    Each category has a queue; the last item repeats once the queue is
    drained.  Items are payload dicts (served as 200 JSON), ``httpx.Response``
    objects or exceptions (raised as transport failures).
    """

    def __init__(self) -> None:
        self._scripts: Dict[ModelCategory, List[Any]] = {}
        self.calls: List[ModelCategory] = []
        self.requests: List[httpx.Request] = []

    def script(self, category: ModelCategory | str, *responses: Any) -> "FakeUpstream":
        self._scripts[ModelCategory(category)] = list(responses)
        return self

    def calls_for(self, category: ModelCategory | str) -> int:
        return self.calls.count(ModelCategory(category))

    def _category_for(self, request: httpx.Request) -> ModelCategory:
        for cat in ModelCategory:
            if request.url == httpx.URL(get_endpoint(cat).url):
                return cat
        raise AssertionError(f"unexpected URL {request.url}")

    def handler(self, request: httpx.Request) -> httpx.Response:
        category = self._category_for(request)
        self.calls.append(category)
        self.requests.append(request)
        queue = self._scripts.get(category)
        if not queue:
            return httpx.Response(503, text="no script")
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        if isinstance(item, httpx.Response):
            return item
        return httpx.Response(200, json=item)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


class SleepRecorder:
    """Stands in for the executor's back-off wait; never really sleeps."""

    def __init__(self, cancel_after: Optional[int] = None) -> None:
        self.delays: List[float] = []
        self._cancel_after = cancel_after

    async def __call__(self, delay: float, cancel: Optional[asyncio.Event]) -> bool:
        self.delays.append(delay)
        if cancel is not None and self._cancel_after is not None and len(self.delays) >= self._cancel_after:
            cancel.set()
        return bool(cancel is not None and cancel.is_set())


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def sleeps() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def policy() -> RetryPolicy:
    return RetryPolicy(max_attempts=3, base_delay=1.0, backoff_multiplier=2.0)
