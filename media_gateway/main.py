"""Media Gateway application.

Admin API for the media bucket (upload, delete, CDN purge) in front of an
on-the-fly image transformation proxy.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from media_gateway.api.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from media_gateway.api.routes import router
from media_gateway.config import Settings, get_settings
from media_gateway.services.image_service import CloudflareImageTransformer, ImageTransformer
from media_gateway.services.purge_service import CachePurger, CloudflarePurger
from media_gateway.services.storage_service import ObjectStore, create_object_store
from media_gateway.utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    storage: Optional[ObjectStore] = None,
    purger: Optional[CachePurger] = None,
    transformer: Optional[ImageTransformer] = None,
) -> FastAPI:
    """
    Build the application.

    Services that are not passed in are created during startup from
    ``settings``; tests pass in-memory substitutes for all three.
    """
    settings = settings or get_settings()
    setup_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator:
        logger.info(f"Starting {settings.APP_NAME} v{settings.VERSION}")
        logger.info(f"Environment: {settings.ENVIRONMENT}")
        if not settings.IMAGE_API_SECRET:
            logger.warning("IMAGE_API_SECRET is not set - admin endpoints will reject every request")

        http_client = httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT, follow_redirects=True)

        app.state.settings = settings
        app.state.storage = storage or create_object_store(settings)
        app.state.purger = purger or CloudflarePurger(http_client, settings)
        app.state.transformer = transformer or CloudflareImageTransformer(http_client, settings)

        yield

        logger.info("Initiating graceful shutdown...")
        await app.state.storage.close()
        await http_client.aclose()
        logger.info("Shutdown complete")

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.VERSION,
        description="Authenticated media bucket admin API and image transformation proxy",
        # Every unmatched path is an image, so the docs routes stay off.
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )

    # Add middleware (order matters!)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestLoggingMiddleware)

    if settings.CORS_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.CORS_ORIGINS,
            allow_methods=["*"],
            allow_headers=["*"],
            expose_headers=["X-Request-ID"],
        )

    app.include_router(router)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(
            f"Unhandled exception: {exc}",
            extra={"path": request.url.path, "method": request.method},
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error" if settings.is_production() else str(exc),
                "type": "internal_error",
            },
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "media_gateway.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.ENVIRONMENT == "development",
    )
