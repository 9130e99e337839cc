"""FastAPI application factory."""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager

import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from planwarden.config.logging import setup_logging
from planwarden.config.settings import get_settings
from planwarden.exceptions import BusinessError, CatalogError
from planwarden.types import ErrorCode
from planwarden.web.dependencies import Container, build_container, get_container
from planwarden.web.health import check_health
from planwarden.web.middleware import FeatureGateMiddleware, FeatureRoute, RequestIDMiddleware
from planwarden.web.routes.plans import router as plans_router
from planwarden.web.routes.subscriptions import router as subscriptions_router

logger = structlog.get_logger(__name__)


def create_app(
    container: Container | None = None,
    feature_routes: Iterable[FeatureRoute] = (),
) -> FastAPI:
    """Create and configure the FastAPI application.

    ``feature_routes`` declares which endpoints require which plan feature.
    """
    routes = list(feature_routes)
    settings = get_settings()
    setup_logging(log_level=settings.log_level, json_output=not settings.debug)
    owns_engine = container is None

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        if owns_engine:
            await app.state.container.engine.dispose()

    app = FastAPI(
        title=settings.app_name,
        description="Subscription entitlements and plan changes",
        version="0.1.0",
        lifespan=lifespan,
    )
    if container is None:
        from planwarden.storage.database import get_engine

        container = build_container(get_engine(), settings)
    app.state.container = container

    @app.exception_handler(BusinessError)
    async def business_error_handler(request: Request, exc: BusinessError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(CatalogError)
    async def catalog_error_handler(request: Request, exc: CatalogError) -> JSONResponse:
        logger.error("catalog_misconfigured", error=str(exc), path=request.url.path)
        return JSONResponse(
            status_code=500,
            content={
                "code": str(ErrorCode.INTERNAL_ERROR),
                "message": "Internal server error",
                "details": {},
            },
        )

    # Last added runs first
    app.add_middleware(FeatureGateMiddleware, routes=routes)
    app.add_middleware(RequestIDMiddleware)

    @app.get("/api/health")
    async def health_check(container: Container = Depends(get_container)) -> dict[str, object]:
        return await check_health(container)

    app.include_router(plans_router)
    app.include_router(subscriptions_router)

    logger.info("app_created", gated_routes=len(routes))
    return app
