"""FastAPI application factory: entry point for the Goryl personalization service."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from goryl.api.routes.recommendations import router as recommendations_router
from goryl.config import settings
from goryl.database import create_schema
from goryl.services.personalization import PersonalizationService, build_service

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: wire the pipeline, start the sweeper, drain on exit."""
    logger.info("Goryl personalization starting up...")
    logger.info("Event store backend: %s", settings.event_store_backend.value)
    logger.info("Product store backend: %s", settings.product_store_backend.value)

    service: PersonalizationService | None = getattr(app.state, "personalization", None)
    if service is None:
        service = build_service(settings)
        app.state.personalization = service
    if service.engine is not None:
        await create_schema(service.engine)

    service.coordinator.start_sweeper(
        settings.sweep_regions, settings.sweep_interval_seconds
    )
    yield
    logger.info("Goryl personalization shutting down...")
    await service.close()


def create_app(service: PersonalizationService | None = None) -> FastAPI:
    """Build and configure the FastAPI application."""
    application = FastAPI(
        title="Goryl Personalization",
        description="Interaction tracking and product recommendations for the Goryl storefront",
        version="1.0.0",
        lifespan=lifespan,
    )
    if service is not None:
        application.state.personalization = service

    # ── Middleware ──────────────────────────────────
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Routes ─────────────────────────────────────
    application.include_router(recommendations_router)

    # ── Health Check ───────────────────────────────
    @application.get("/health", tags=["System"])
    async def health() -> dict[str, str]:
        return {"status": "healthy", "service": "goryl-personalization"}

    return application


app = create_app()
