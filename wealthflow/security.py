"""
wealthflow.security — HTTP middleware for the flow API.

Provides:
    - RequestIdMiddleware: X-Request-ID on every request/response + access log
    - SecurityHeadersMiddleware: hardening headers and per-path Cache-Control
    - SnapshotETagMiddleware: ETag derived from the served FlowSet hash,
      304 on If-None-Match
"""

from __future__ import annotations

import hashlib
import json
import logging
import time
import uuid
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("wealthflow.http")

# Paths whose bodies do not depend on the snapshot alone
UNCACHED_PATHS = frozenset(("/health", "/ready"))


# ---------------------------------------------------------------------------
# Request-ID middleware
# ---------------------------------------------------------------------------

class RequestIdMiddleware(BaseHTTPMiddleware):
    """Attach a request ID (client-supplied or random) and log the request."""

    async def dispatch(self, request: Request, call_next: Any) -> Response:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:16]
        request.state.request_id = request_id
        started = time.monotonic()
        response = await call_next(request)
        latency_ms = round((time.monotonic() - started) * 1000, 1)
        response.headers["X-Request-ID"] = request_id
        _log_request(request, response.status_code, latency_ms, request_id)
        return response


# ---------------------------------------------------------------------------
# Security headers middleware
# ---------------------------------------------------------------------------

class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Hardening headers. HSTS only when TLS is terminated upstream (prod).

    Cache-Control:
      - /health, /ready → no-store
      - everything else → short public TTL; the snapshot only changes on restart
    """

    def __init__(self, app: Any, *, enable_hsts: bool = False) -> None:
        super().__init__(app)
        self.enable_hsts = enable_hsts

    async def dispatch(self, request: Request, call_next: Any) -> Response:
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "no-referrer"
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"
        if self.enable_hsts:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        if request.url.path in UNCACHED_PATHS:
            response.headers["Cache-Control"] = "no-store"
        else:
            response.headers["Cache-Control"] = "public, max-age=300, stale-while-revalidate=600"
        return response


# ---------------------------------------------------------------------------
# Snapshot ETag middleware
# ---------------------------------------------------------------------------

def snapshot_etag(flow_set_hash: str, path: str, query: str) -> str:
    """Weak ETag for one (snapshot, path, query) triple."""
    digest = hashlib.sha256(f"{flow_set_hash}\n{path}\n{query}".encode("utf-8")).hexdigest()
    return f'W/"{digest[:32]}"'


class SnapshotETagMiddleware(BaseHTTPMiddleware):
    """Tag GET 200 responses with an ETag derived from the served snapshot.

    Every data body is a pure function of (FlowSet, path, query), so the
    tag is computed from the FlowSet hash without buffering the body. The
    app publishes the hash on ``app.state.flow_set_hash``.
    """

    async def dispatch(self, request: Request, call_next: Any) -> Response:
        if request.method != "GET" or request.url.path in UNCACHED_PATHS:
            return await call_next(request)

        response = await call_next(request)
        flow_set_hash = getattr(request.app.state, "flow_set_hash", None)
        if response.status_code != 200 or not flow_set_hash:
            return response

        etag = snapshot_etag(flow_set_hash, request.url.path, request.url.query)
        if_none_match = request.headers.get("if-none-match", "")
        if etag in {tag.strip() for tag in if_none_match.split(",")}:
            return Response(status_code=304, headers={"ETag": etag})

        response.headers["ETag"] = etag
        return response


# ---------------------------------------------------------------------------
# Structured request logging
# ---------------------------------------------------------------------------

def _mask_ip(ip: str | None) -> str:
    """Keep the first two IPv4 octets or the first four IPv6 groups."""
    if not ip:
        return "unknown"
    if ":" in ip:
        return ":".join(ip.split(":")[:4]) + "::*"
    parts = ip.split(".")
    if len(parts) == 4:
        return f"{parts[0]}.{parts[1]}.*.*"
    return "unknown"


def _log_request(request: Request, status_code: int, latency_ms: float, request_id: str) -> None:
    log_data = {
        "event": "http_request",
        "method": request.method,
        "path": request.url.path,
        "status": status_code,
        "latency_ms": latency_ms,
        "client_ip": _mask_ip(request.client.host if request.client else None),
        "request_id": request_id,
    }
    if status_code >= 500:
        logger.error(json.dumps(log_data))
    elif status_code >= 400:
        logger.warning(json.dumps(log_data))
    else:
        logger.info(json.dumps(log_data))
