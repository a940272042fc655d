#!/usr/bin/env python3
"""
wealthflow.api — Global Wealth Flow API server.

Serves the FlowSet and its derived views to the map front-end. The
snapshot is built once at startup (World Bank fetch → synthesis →
aggregation), held in memory, and replaced only by a restart. Endpoints
do no computation beyond projection and rounding.

Endpoints:
    GET /                           → API metadata
    GET /health                     → Liveness probe
    GET /ready                      → Readiness probe with snapshot diagnostics
    GET /countries                  → Registry with net balance per country
    GET /categories                 → Flow categories, descriptions, totals
    GET /flows?category=            → Full FlowSet, optionally one category
    GET /country/{code}             → Country detail: totals, net, top partners
    GET /country/{code}/flows       → Flows touching one country (?category=)
    GET /north-south                → Aggregate North/South transfer

Environment variables:
    ENV               — "dev" or "prod" (default: "prod")
    ALLOWED_ORIGINS   — Comma-separated extra CORS origins
    ENABLE_DOCS       — "1" to force-enable /docs in prod
    WEALTHFLOW_FETCH  — "0" to skip the World Bank fetch (fallback data only)
    REDIS_URL         — Optional Redis URL for distributed rate limiting

Requires: fastapi, uvicorn, slowapi
"""

from __future__ import annotations

import json
import logging
import os
import re
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError, field_validator
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.middleware.gzip import GZipMiddleware

from wealthflow.aggregation import rank_partners
from wealthflow.constants import (
    ALL_CATEGORIES,
    CATEGORY_DESCRIPTIONS,
    FLOW_CATEGORIES,
    ROUND_PRECISION,
    TOP_PARTNER_LIMIT,
)
from wealthflow.flows import flows_to_dicts
from wealthflow.pipeline import FlowSnapshot, load_snapshot
from wealthflow.registry import COUNTRY_REGISTRY, UnknownCountryError, get_country
from wealthflow.security import (
    RequestIdMiddleware,
    SecurityHeadersMiddleware,
    SnapshotETagMiddleware,
)
from wealthflow.selection import filter_category, normalize_category, visible_flows

API_VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Logging configuration — structured JSON to stdout
# ---------------------------------------------------------------------------

_log_level = logging.DEBUG if os.getenv("ENV", "prod") == "dev" else logging.INFO
logging.basicConfig(
    level=_log_level,
    format="%(message)s",
    stream=sys.stdout,
)
logger = logging.getLogger("wealthflow.api")

# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------

ENV = os.getenv("ENV", "prod").lower().strip()
ALLOWED_ORIGINS_RAW = os.getenv("ALLOWED_ORIGINS", "").strip()
ENABLE_DOCS = os.getenv("ENABLE_DOCS", "").strip() == "1"
REDIS_URL = os.getenv("REDIS_URL", "").strip() or None


def fetch_enabled() -> bool:
    """Read at startup so tests and one-off runs can switch it off."""
    return os.getenv("WEALTHFLOW_FETCH", "1").strip() != "0"


_COUNTRY_RE = re.compile(r"^[A-Za-z]{3}$")

# ---------------------------------------------------------------------------
# Rate limiter
# ---------------------------------------------------------------------------

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["240/minute"],
    storage_uri=REDIS_URL if REDIS_URL else "memory://",
    strategy="fixed-window",
)

# ---------------------------------------------------------------------------
# Snapshot state — one immutable snapshot per process
# ---------------------------------------------------------------------------

_state: dict[str, FlowSnapshot] = {}


def install_snapshot(snapshot: FlowSnapshot) -> None:
    """Replace the served snapshot (whole-value swap)."""
    _state["snapshot"] = snapshot
    app.state.flow_set_hash = snapshot.flow_set_hash


def current_snapshot() -> FlowSnapshot:
    """Served snapshot.

    When the lifespan hook did not run, an offline (fallback-only) snapshot
    is built on first use. The World Bank fetch blocks, so it only ever
    runs at startup, never inside a request.
    """
    snapshot = _state.get("snapshot")
    if snapshot is None:
        logger.warning(json.dumps({"event": "snapshot_built_lazily", "fetch": False}))
        snapshot = load_snapshot(fetch=False)
        install_snapshot(snapshot)
    return snapshot


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup: fetch indicators and build the snapshot before serving.

    Fetch failures degrade to fallback data; the server always starts.
    """
    fetch = fetch_enabled()
    logger.info(json.dumps({
        "event": "startup",
        "env": ENV,
        "fetch": fetch,
        "cors_origins": len(_CORS_ORIGINS),
        "rate_limit_backend": "redis" if REDIS_URL else "memory",
    }))

    snapshot = load_snapshot(fetch=fetch)
    install_snapshot(snapshot)
    if snapshot.fallback_categories:
        logger.warning(json.dumps({
            "event": "startup_degraded",
            "fallback_categories": list(snapshot.fallback_categories),
        }))

    yield

    logger.info(json.dumps({"event": "shutdown"}))


def _build_docs_kwargs() -> dict[str, Any]:
    if ENV == "prod" and not ENABLE_DOCS:
        return {"docs_url": None, "redoc_url": None, "openapi_url": None}
    return {"docs_url": "/docs", "redoc_url": "/redoc"}


app = FastAPI(
    title="Global Wealth Flow API",
    description="Synthesized bilateral financial flows between Global North and South",
    version=API_VERSION,
    lifespan=_lifespan,
    **_build_docs_kwargs(),
)
app.state.limiter = limiter

# ---------------------------------------------------------------------------
# CORS — GET only, explicit allow-list
# ---------------------------------------------------------------------------

_CORS_ORIGINS: list[str] = ["http://localhost:3000"]

if ALLOWED_ORIGINS_RAW:
    for _o in ALLOWED_ORIGINS_RAW.split(","):
        _o = _o.strip()
        if _o and _o not in _CORS_ORIGINS:
            _CORS_ORIGINS.append(_o)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID", "ETag"],
    max_age=3600,
)

# Execution order (outermost first): GZip → RequestId → SecurityHeaders → ETag → CORS
app.add_middleware(SnapshotETagMiddleware)
app.add_middleware(SecurityHeadersMiddleware, enable_hsts=(ENV == "prod"))
app.add_middleware(RequestIdMiddleware)
app.add_middleware(GZipMiddleware, minimum_size=500)


@app.exception_handler(RateLimitExceeded)
async def _rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return JSONResponse(
        status_code=429,
        content={"detail": "Rate limit exceeded. Try again later."},
        headers={"Retry-After": "60"},
    )


@app.exception_handler(Exception)
async def _global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    request_id = getattr(request.state, "request_id", "unknown")
    logger.error(json.dumps({
        "event": "unhandled_exception",
        "exception_type": type(exc).__name__,
        "request_id": request_id,
        "path": request.url.path,
    }))
    return JSONResponse(status_code=500, content={"detail": "Internal server error."})


# ---------------------------------------------------------------------------
# Query model — tolerant normalization, strict vocabulary
# ---------------------------------------------------------------------------

class FlowQuery(BaseModel):
    """Query parameters shared by the flow endpoints.

    - category: case-insensitive, "all" or a flow category; missing → "all"
    - country: case-insensitive ISO3, must be in the registry when present
    """

    model_config = {"extra": "ignore"}

    category: str = ALL_CATEGORIES
    country: Optional[str] = None

    @field_validator("category", mode="before")
    @classmethod
    def _normalize_category(cls, v: Any) -> str:
        return normalize_category(None if v is None else str(v))

    @field_validator("country", mode="before")
    @classmethod
    def _normalize_country(cls, v: Any) -> Optional[str]:
        if v is None or v == "":
            return None
        code = str(v).strip().upper()
        if not _COUNTRY_RE.match(code):
            raise ValueError(f"country must be a 3-letter ISO code: '{v}'")
        if code not in COUNTRY_REGISTRY:
            raise ValueError(f"Country '{code}' is not in the registry.")
        return code


class PartnerOut(BaseModel):
    code: str
    name: Optional[str]
    amount: float


class CountryDetail(BaseModel):
    code: str
    name: str
    region: str
    is_north: bool
    coordinates: list[float]
    net: float
    outflows: dict[str, float]
    inflows: dict[str, float]
    top_outgoing: list[PartnerOut]
    top_incoming: list[PartnerOut]
    indicators: dict[str, float]


def _parse_query(**params: Any) -> FlowQuery:
    try:
        return FlowQuery(**params)
    except ValidationError as exc:
        details = [
            {
                "field": ".".join(str(p) for p in e.get("loc", [])),
                "message": e.get("msg", "Validation failed"),
            }
            for e in exc.errors()
        ]
        raise HTTPException(
            status_code=400,
            detail={
                "error": "INVALID_FLOW_QUERY",
                "message": "Query validation failed.",
                "details": details,
            },
        ) from None


def _validate_country_code(code: str) -> str:
    """Normalize a path country code. Raises 404 when it is not in the registry."""
    code = code.strip().upper()
    if not _COUNTRY_RE.match(code):
        raise HTTPException(status_code=404, detail=f"Country '{code}' not found.")
    try:
        return get_country(code).code
    except UnknownCountryError:
        raise HTTPException(status_code=404, detail=f"Country '{code}' not found.") from None


def _r(value: float) -> float:
    return round(value, ROUND_PRECISION)


def _partners_out(ranked: list[tuple[str, float]]) -> list[PartnerOut]:
    return [
        PartnerOut(
            code=code,
            name=COUNTRY_REGISTRY[code].name if code in COUNTRY_REGISTRY else None,
            amount=_r(amount),
        )
        for code, amount in ranked
    ]


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@app.get("/")
@limiter.limit("60/minute")
async def root(request: Request) -> dict:
    """API metadata."""
    snapshot = current_snapshot()
    return {
        "name": "Global Wealth Flow API",
        "version": API_VERSION,
        "built_at": snapshot.built_at,
        "flow_count": len(snapshot.flows),
        "flow_set_hash": snapshot.flow_set_hash,
        "categories": list(FLOW_CATEGORIES),
        "countries": len(COUNTRY_REGISTRY),
    }


@app.get("/health", include_in_schema=False)
async def health(request: Request) -> JSONResponse:
    """Liveness probe. No state reads, always 200."""
    return JSONResponse(status_code=200, content={"status": "ok", "version": API_VERSION})


@app.get("/ready")
@limiter.limit("60/minute")
async def ready(request: Request) -> JSONResponse:
    """Readiness probe. Always 200; degradation is reported in the body."""
    snapshot = current_snapshot()
    report = snapshot.fetch_report
    live_data = len(snapshot.fallback_categories) < len(FLOW_CATEGORIES) and not snapshot.degraded
    body = {
        "ready": True,
        "status": "healthy" if live_data else "degraded",
        "version": API_VERSION,
        "flow_count": len(snapshot.flows),
        "flow_set_hash": snapshot.flow_set_hash,
        "views_hash": snapshot.views_hash,
        "fallback_categories": list(snapshot.fallback_categories),
        "degraded": snapshot.degraded,
        "fetch": report.to_dict() if report else None,
        "indicator_coverage": snapshot.indicators.coverage(),
        "timestamp": datetime.now(UTC).isoformat(),
    }
    return JSONResponse(status_code=200, content=body)


@app.get("/countries")
@limiter.limit("60/minute")
async def list_countries(request: Request) -> Any:
    """Registry entries with their net flow balance."""
    views = current_snapshot().views
    return [
        {**country.to_dict(), "net_balance": _r(views.net_balance[code])}
        for code, country in COUNTRY_REGISTRY.items()
    ]


@app.get("/categories")
@limiter.limit("60/minute")
async def list_categories(request: Request) -> Any:
    """Flow categories with descriptions and totals (billions)."""
    snapshot = current_snapshot()
    totals = snapshot.views.totals_by_category
    return {
        "categories": [
            {
                "key": category,
                "description": CATEGORY_DESCRIPTIONS[category],
                "total": _r(totals[category]),
                "fallback": category in snapshot.fallback_categories,
            }
            for category in FLOW_CATEGORIES
        ],
        "grand_total": _r(snapshot.views.grand_total),
    }


@app.get("/flows")
@limiter.limit("120/minute")
async def list_flows(request: Request, category: Optional[str] = None) -> Any:
    """The FlowSet in generation order, optionally restricted to one category."""
    query = _parse_query(category=category)
    flows = filter_category(current_snapshot().flows, query.category)
    return {"category": query.category, "count": len(flows), "flows": flows_to_dicts(flows)}


@app.get("/country/{code}")
@limiter.limit("120/minute")
async def get_country_detail(code: str, request: Request) -> Any:
    """Totals in each direction, net position, top partners and the raw indicator values."""
    code = _validate_country_code(code)
    country = COUNTRY_REGISTRY[code]
    snapshot = current_snapshot()
    stats = snapshot.views.country_stats[code]
    detail = CountryDetail(
        code=code,
        name=country.name,
        region="Global North" if country.is_north else "Global South",
        is_north=country.is_north,
        coordinates=list(country.coordinates),
        net=_r(stats.net),
        outflows=stats.outflows.to_dict(),
        inflows=stats.inflows.to_dict(),
        top_outgoing=_partners_out(rank_partners(stats.partners_outgoing, TOP_PARTNER_LIMIT)),
        top_incoming=_partners_out(rank_partners(stats.partners_incoming, TOP_PARTNER_LIMIT)),
        indicators=dict(sorted(snapshot.indicators.for_country(code).items())),
    )
    return detail.model_dump()


@app.get("/country/{code}/flows")
@limiter.limit("120/minute")
async def get_country_flows(code: str, request: Request, category: Optional[str] = None) -> Any:
    """Flows where the country is source or destination."""
    code = _validate_country_code(code)
    query = _parse_query(country=code, category=category)
    flows = visible_flows(current_snapshot().flows, query.country, query.category)
    return {
        "country": code,
        "category": query.category,
        "count": len(flows),
        "flows": flows_to_dicts(flows),
    }


@app.get("/north-south")
@limiter.limit("60/minute")
async def north_south(request: Request) -> Any:
    """South→North vs North→South totals. ``flow_ratio`` is null when nothing flows South."""
    return current_snapshot().views.north_south.to_dict()


# ---------------------------------------------------------------------------
# Entry point (development only)
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn

    os.environ.setdefault("ENV", "dev")
    uvicorn.run(app, host="0.0.0.0", port=8000)  # noqa: S104
