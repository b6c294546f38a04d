from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger

from fitcoach.api.coach import router as coach_router
from fitcoach.api.registry import CoachRegistry, build_registry
from fitcoach.config.settings import settings
from fitcoach.core.logger import setup_logger


def create_app(registry: CoachRegistry | None = None) -> FastAPI:
    """Create the FastAPI app.

    Args:
        registry: Pre-built registry (tests); defaults to the SQL-backed one from settings
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logger(level=settings.log_level)
        app.state.registry = registry or build_registry(settings)
        logger.info("Coach API started", ai_configured=settings.ai_configured)
        try:
            yield
        finally:
            await app.state.registry.aclose()
            logger.info("Coach API stopped")

    app = FastAPI(title="fitcoach", lifespan=lifespan)
    app.include_router(coach_router)

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    return app
