"""FastAPI middleware: request ID injection and plan feature gating."""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse

from planwarden.exceptions import BusinessError

if TYPE_CHECKING:
    from starlette.requests import Request
    from starlette.responses import Response

logger = structlog.get_logger(__name__)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Adds a unique X-Request-ID header to every response."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("x-request-id", str(uuid.uuid4()))
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)
        response = await call_next(request)
        response.headers["x-request-id"] = request_id
        return response


@dataclass(frozen=True, slots=True)
class FeatureRoute:
    """One gated endpoint: requests matching method and path prefix need ``feature_code``."""

    method: str
    path_prefix: str
    feature_code: str

    def matches(self, method: str, path: str) -> bool:
        return method.upper() == self.method.upper() and path.startswith(self.path_prefix)


class FeatureGateMiddleware(BaseHTTPMiddleware):
    """Checks plan entitlements before the handler runs.

    Routes are declared in a table rather than on each handler. RESOURCE
    counts come from the registered resource counters; requests without a
    caller identity pass through so the route's own auth can reject them.
    """

    def __init__(self, app: object, routes: Iterable[FeatureRoute] = ()) -> None:
        super().__init__(app)  # type: ignore[arg-type]
        self._routes = tuple(routes)

    def _match(self, request: Request) -> FeatureRoute | None:
        for route in self._routes:
            if route.matches(request.method, request.url.path):
                return route
        return None

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        route = self._match(request)
        user_id = request.headers.get("x-user-id")
        if route is None or not user_id:
            return await call_next(request)

        container = request.app.state.container
        feature_code = route.feature_code
        resource_count = None
        if container.resources.has(feature_code):
            resource_count = await container.resources.count(user_id, feature_code)

        try:
            await container.checker.require_feature_access(user_id, feature_code, resource_count)
        except BusinessError as exc:
            logger.info(
                "feature_gate_denied",
                user_id=user_id,
                feature_code=feature_code,
                path=request.url.path,
            )
            return JSONResponse(exc.to_dict(), status_code=exc.status_code)
        return await call_next(request)
