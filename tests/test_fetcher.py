import httpx
import pytest

from conftest import catalog_payload
from nanogpt_catalog.config import get_endpoint, settings
from nanogpt_catalog.errors import (
    EmptyCatalogError,
    HttpStatusError,
    NetworkError,
    ValidationError,
)
from nanogpt_catalog.fetcher import CatalogFetcher, validate_catalog
from nanogpt_catalog.models import ModelCategory


@pytest.mark.asyncio
@pytest.mark.parametrize("category", list(ModelCategory))
async def test_fetch_tags_every_descriptor_with_category(upstream, category):
    upstream.script(category, catalog_payload("gpt-4o", "claude-3-5-sonnet", "llama-3.1-70b"))
    fetcher = CatalogFetcher(client=upstream.client())

    result = await fetcher.fetch(get_endpoint(category), "sk-test")

    assert result.category is category
    assert len(result.descriptors) == 3
    assert all(d.category is category for d in result.descriptors)
    assert [d.id for d in result.descriptors] == ["gpt-4o", "claude-3-5-sonnet", "llama-3.1-70b"]
    assert upstream.calls_for(category) == 1


@pytest.mark.asyncio
async def test_request_headers(upstream):
    upstream.script("all", catalog_payload("gpt-4o"))
    fetcher = CatalogFetcher(client=upstream.client(), user_agent="host-app/2.1")

    await fetcher.fetch(get_endpoint("all"), "sk-abc")

    req = upstream.requests[0]
    assert req.method == "GET"
    assert req.headers["authorization"] == "Bearer sk-abc"
    assert req.headers["user-agent"] == "host-app/2.1"
    assert req.headers["accept"] == "application/json"


@pytest.mark.asyncio
async def test_missing_id_reports_exact_path(upstream):
    payload = catalog_payload("a", "b", "c", "d")
    del payload["data"][3]["id"]
    upstream.script("all", payload)

    with pytest.raises(ValidationError) as exc_info:
        await CatalogFetcher(client=upstream.client()).fetch(get_endpoint("all"), "k")

    assert exc_info.value.field_path == "data[3].id"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "entry_fields, path",
    [
        ({"context_length": "128000"}, "data[0].context_length"),
        ({"vision": 1}, "data[0].vision"),
        ({"max_output_length": True}, "data[0].max_output_length"),
    ],
)
async def test_no_silent_coercion(upstream, entry_fields, path):
    upstream.script("all", catalog_payload("gpt-4o", **entry_fields))

    with pytest.raises(ValidationError) as exc_info:
        await CatalogFetcher(client=upstream.client()).fetch(get_endpoint("all"), "k")

    assert exc_info.value.field_path == path


@pytest.mark.asyncio
async def test_empty_catalog(upstream):
    upstream.script("premium", {"object": "list", "data": []})
    with pytest.raises(EmptyCatalogError) as exc_info:
        await CatalogFetcher(client=upstream.client()).fetch(get_endpoint("premium"), "k")
    assert exc_info.value.category is ModelCategory.PREMIUM


@pytest.mark.asyncio
async def test_http_error_carries_truncated_body(upstream):
    upstream.script("all", httpx.Response(500, text="x" * 1000))

    with pytest.raises(HttpStatusError) as exc_info:
        await CatalogFetcher(client=upstream.client()).fetch(get_endpoint("all"), "k")

    err = exc_info.value
    assert err.status_code == 500
    assert len(err.body_snippet) == settings.error_snippet_length
    assert "HTTP 500" in str(err)


@pytest.mark.asyncio
async def test_transport_failure_is_network_error(upstream):
    upstream.script("all", httpx.ConnectError("connection refused"))
    with pytest.raises(NetworkError):
        await CatalogFetcher(client=upstream.client()).fetch(get_endpoint("all"), "k")


@pytest.mark.asyncio
async def test_non_json_body(upstream):
    upstream.script("all", httpx.Response(200, text="<html>maintenance</html>"))
    with pytest.raises(ValidationError) as exc_info:
        await CatalogFetcher(client=upstream.client()).fetch(get_endpoint("all"), "k")
    assert exc_info.value.field_path == "<root>"


@pytest.mark.asyncio
async def test_duplicate_ids_keep_first(upstream):
    payload = catalog_payload("gpt-4o", "gpt-4o", "o1")
    payload["data"][0]["name"] = "First"
    upstream.script("all", payload)

    result = await CatalogFetcher(client=upstream.client()).fetch(get_endpoint("all"), "k")

    assert [d.id for d in result.descriptors] == ["gpt-4o", "o1"]
    assert result.descriptors[0].display_name == "First"


def test_validate_catalog_rejects_missing_data():
    with pytest.raises(ValidationError) as exc_info:
        validate_catalog({"object": "list"})
    assert exc_info.value.field_path == "data"


def test_validate_catalog_keeps_unknown_fields():
    catalog = validate_catalog(catalog_payload("gpt-4o", icon_url="https://example.com/i.png"))
    assert catalog.data[0].id == "gpt-4o"


@pytest.mark.asyncio
async def test_snippet_length_is_per_fetcher(upstream):
    upstream.script("all", httpx.Response(502, text="y" * 100))
    fetcher = CatalogFetcher(client=upstream.client(), snippet_length=10)

    with pytest.raises(HttpStatusError) as exc_info:
        await fetcher.fetch(get_endpoint("all"), "k")

    assert exc_info.value.body_snippet == "y" * 10
