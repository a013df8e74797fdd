"""Request context middleware: single deep middleware for observability and rate limiting.

Responsibilities (all handled in one pass, not separate middlewares):
- Generate or propagate ``X-Request-ID`` header
- Measure request duration
- Log every request/response as structured JSON, with delivery tokens in
  the path masked
- Enforce per-client rate limits through the limiters on ``app.state``

Token redemption paths get the stricter delivery limiter on top of the
general one, which slows down guessing against that unauthenticated surface.
"""

import logging
import time
import uuid
from ipaddress import IPv4Network, IPv6Network, ip_address
from typing import Optional, Sequence

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from ..core.config import settings
from ..core.logging_config import mask_delivery_tokens, request_id_var
from ..exceptions import RateLimitedError

logger = logging.getLogger(__name__)

# Paths that bypass rate limiting.
_EXEMPT_PATHS = frozenset({"/", "/health", "/docs", "/redoc", "/openapi.json"})

_DELIVERY_PREFIXES = ("/api/documents/stream/", "/api/documents/download/")


def _is_trusted(host: str, trusted: Sequence[IPv4Network | IPv6Network]) -> bool:
    try:
        address = ip_address(host)
    except ValueError:
        return False
    return any(address in network for network in trusted)


def client_ip(
    request: Request,
    trusted: Optional[Sequence[IPv4Network | IPv6Network]] = None,
) -> str:
    """The address a request came from, for rate limiting and audit.

    ``X-Forwarded-For`` is only read when the direct peer is a trusted
    proxy. The header is then walked right to left, past further trusted
    hops, and the first address not in a trusted network is the client.
    Entries that are not IP addresses end the walk.
    """
    peer = request.client.host if request.client else "unknown"
    if trusted is None:
        trusted = settings.get_trusted_proxies()
    if not trusted or not _is_trusted(peer, trusted):
        return peer

    forwarded = request.headers.get("x-forwarded-for", "")
    hops = [h.strip() for h in forwarded.split(",") if h.strip()]
    client = peer
    for hop in reversed(hops):
        try:
            ip_address(hop)
        except ValueError:
            break
        client = hop
        if not _is_trusted(hop, trusted):
            break
    return client


def _limiters_for(request: Request, path: str) -> list:
    limiters = []
    state = request.app.state
    general = getattr(state, "rate_limiter", None)
    if general is not None:
        limiters.append(general)
    if path.startswith(_DELIVERY_PREFIXES):
        delivery = getattr(state, "delivery_rate_limiter", None)
        if delivery is not None:
            limiters.append(delivery)
    return limiters


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Single middleware handling request-id, timing, logging, and rate limiting."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        # --- Request ID ---
        rid = request.headers.get("x-request-id") or uuid.uuid4().hex[:16]
        request_id_var.set(rid)
        path = request.url.path
        safe_path = mask_delivery_tokens(path)

        # --- Rate limiting ---
        if path not in _EXEMPT_PATHS:
            key = client_ip(request)
            for limiter in _limiters_for(request, path):
                allowed, retry_after = limiter.check(key)
                if allowed:
                    continue
                logger.warning(
                    "Rate limit exceeded",
                    extra={
                        "client": key,
                        "path": safe_path,
                        "scope": limiter.scope,
                        "retry_after": round(retry_after, 1),
                    },
                )
                error = RateLimitedError(retry_after)
                return JSONResponse(
                    status_code=error.status_code,
                    content=error.to_dict(),
                    headers={
                        "Retry-After": str(int(retry_after) + 1),
                        "X-Request-ID": rid,
                    },
                )

        # --- Timing ---
        start = time.monotonic()
        response = await call_next(request)
        duration_ms = round((time.monotonic() - start) * 1000, 1)

        # --- Response headers ---
        response.headers["X-Request-ID"] = rid
        response.headers["X-Response-Time"] = f"{duration_ms}ms"

        # --- Structured request log ---
        logger.info(
            "%s %s %s", request.method, safe_path, response.status_code,
            extra={
                "method": request.method,
                "path": safe_path,
                "status_code": response.status_code,
                "duration_ms": duration_ms,
            },
        )

        return response
