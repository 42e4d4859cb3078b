"""
server.py — FastAPI application exposing the NanoGPT catalog client.

  GET  /health              — liveness probe
  GET  /v1/endpoints        — catalog categories in fallback order
  GET  /v1/models           — resolved catalog (``?category=premium``)
  POST /v1/compose          — model id suffix / headers / body for a request
  GET  /stats               — resolution and cache counters
  POST /admin/cache/clear   — drop cached catalogs

The upstream API key comes from the ``Authorization: Bearer`` header, or
from the service's credential accessor when the header is absent.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .config import endpoint_registry, settings
from .errors import (
    AggregateFetchError,
    CatalogCancelledError,
    MissingCredentialError,
    ValidationError,
)
from .models import FeatureOverride, FeatureToggleSnapshot, ModelCategory
from .service import CatalogService

logger = logging.getLogger(__name__)

# ── Singleton service instance ────────────────────────────────────────────────
_service: CatalogService | None = None  # pylint: disable=invalid-name


def get_service() -> CatalogService:
    """Return the singleton CatalogService.

    Raises RuntimeError if the lifespan manager has not created it yet.
    """
    if _service is None:
        raise RuntimeError("Service not initialised — check lifespan startup")
    return _service


def _require_admin_token(x_admin_token: str | None = Header(None)) -> None:
    if settings.admin_token and x_admin_token != settings.admin_token:
        raise HTTPException(status_code=403, detail="Invalid or missing admin token")


def _bearer_credential(authorization: str | None = Header(None)) -> Optional[str]:
    if not authorization:
        return None
    try:
        scheme, key = authorization.split()
    except ValueError as err:
        raise HTTPException(status_code=401, detail="Malformed Authorization header") from err
    if scheme.lower() != "bearer":
        raise HTTPException(status_code=401, detail="Malformed Authorization header")
    return key


# ══════════════════════════════════════════════════════════════════════════════
# FastAPI lifespan (startup / shutdown)
# ══════════════════════════════════════════════════════════════════════════════


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    # pylint: disable=global-statement
    global _service
    _service = CatalogService()
    logger.info("NanoGPT catalog service started")
    try:
        yield
    finally:
        _service = None
        logger.info("NanoGPT catalog service stopped")


app = FastAPI(
    title="NanoGPT Catalog",
    version="0.1.0",
    description=(
        "Discovers NanoGPT models across the all / premium / subscription"
        " catalogs and composes feature-augmented request fragments."
    ),
    lifespan=lifespan,
)


# ══════════════════════════════════════════════════════════════════════════════
# Request schemas
# ══════════════════════════════════════════════════════════════════════════════


class ComposeBody(BaseModel):
    model: str = Field(..., description="Base model id, e.g. gpt-4o")
    toggles: Optional[Dict[str, Dict[str, Any]]] = None
    override: Optional[Dict[str, Any]] = None


# ══════════════════════════════════════════════════════════════════════════════
# Routes
# ══════════════════════════════════════════════════════════════════════════════


@app.get("/health", tags=["Health"])
async def health() -> Dict[str, Any]:
    svc = get_service()
    return {"status": "ok", "cache": svc.cache.stats}


@app.get("/v1/endpoints", tags=["Catalog"])
async def list_endpoints() -> Dict[str, Any]:
    return {
        "object": "list",
        "data": [
            {
                "category": ep.category.value,
                "url": ep.url,
                "display_name": ep.display_label,
                "description": ep.description,
            }
            for ep in endpoint_registry()
        ],
    }


@app.get("/v1/models", tags=["Catalog"])
async def list_models(
    category: Optional[ModelCategory] = Query(None),
    refresh: bool = Query(False),
    credential: Optional[str] = Depends(_bearer_credential),
) -> Dict[str, Any]:
    svc = get_service()
    resolution = await svc.resolve(category, credential, force_refresh=refresh)
    return {
        "object": "list",
        "preferred": resolution.preferred.value,
        "origin": resolution.origin.value,
        "degraded": resolution.degraded_count,
        "data": [d.to_dict() for d in resolution.descriptors],
    }


@app.post("/v1/compose", tags=["Compose"])
async def compose_request(body: ComposeBody) -> Dict[str, Any]:
    svc = get_service()
    try:
        toggles = FeatureToggleSnapshot.from_dict(body.toggles) if body.toggles is not None else None
        override = FeatureOverride(**body.override) if body.override else None
    except TypeError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    composed = svc.compose_request(body.model, toggles, override)
    return {
        "model": composed.model_id,
        "base_id": composed.base_id,
        "suffix": composed.suffix,
        "headers": composed.headers,
        "body": composed.body_fields,
    }


@app.get("/stats", tags=["Observability"])
async def full_stats() -> Dict[str, Any]:
    return get_service().get_stats()


@app.post("/admin/cache/clear", tags=["Admin"])
async def clear_cache(_admin: None = Depends(_require_admin_token)) -> Dict[str, str]:
    get_service().cache.clear()
    return {"status": "ok", "message": "Catalog cache cleared"}


# ══════════════════════════════════════════════════════════════════════════════
# Exception handlers
# ══════════════════════════════════════════════════════════════════════════════


def _error(status: int, exc: Exception, **extra: Any) -> JSONResponse:
    content: Dict[str, Any] = {"message": str(exc), "type": type(exc).__name__}
    content.update(extra)
    return JSONResponse(status_code=status, content={"error": content})


@app.exception_handler(ValidationError)
async def validation_error_handler(_request: Request, exc: ValidationError) -> JSONResponse:
    return _error(422, exc, field=exc.field_path, expected=exc.expected)


@app.exception_handler(MissingCredentialError)
async def missing_credential_handler(_request: Request, exc: MissingCredentialError) -> JSONResponse:
    return _error(401, exc)


@app.exception_handler(AggregateFetchError)
async def aggregate_error_handler(_request: Request, exc: AggregateFetchError) -> JSONResponse:
    attempts = [{"category": exc.preferred.value, "error": str(exc.preferred_error)}]
    attempts += [{"category": c.value, "error": str(e)} for c, e in exc.failures]
    return _error(502, exc, attempts=attempts)


@app.exception_handler(CatalogCancelledError)
async def cancelled_handler(_request: Request, exc: CatalogCancelledError) -> JSONResponse:
    return _error(499, exc)


@app.exception_handler(Exception)
async def global_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception: %s", exc)
    return _error(500, exc)


# ══════════════════════════════════════════════════════════════════════════════
# Entry point
# ══════════════════════════════════════════════════════════════════════════════


def main() -> None:
    import argparse

    import uvicorn

    from .config import initialize_env_vars

    initialize_env_vars()

    parser = argparse.ArgumentParser(description="Start the NanoGPT catalog server.")
    parser.add_argument("--host", default=settings.host, help="Host to bind to")
    parser.add_argument("--port", type=int, default=settings.port, help="Port to bind to")
    parser.add_argument(
        "--debug",
        action="store_true",
        default=settings.debug,
        help="Enable reload/debug mode",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )
    uvicorn.run(
        "nanogpt_catalog.server:app",
        host=args.host,
        port=args.port,
        reload=args.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
