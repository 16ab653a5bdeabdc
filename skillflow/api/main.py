"""FastAPI application factory with lifespan management."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from skillflow.config import SkillflowConfig, config
from skillflow.service import SkillflowService
from skillflow.version import __version__

logger = logging.getLogger(__name__)


def create_app(service: Optional[SkillflowService] = None, app_config: Optional[SkillflowConfig] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        service: Prebuilt service (tests); when None one is built from config at startup.
        app_config: Settings; defaults to the module-level config.
    """
    settings = app_config or (service.config if service else config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # ── Startup ──
        logger.info("skillflow v%s starting...", __version__)
        app.state.service = service or SkillflowService.from_config(settings)
        await app.state.service.start()
        logger.info("skillflow v%s ready", __version__)

        yield

        # ── Shutdown ──
        logger.info("skillflow shutting down...")
        await app.state.service.stop()

    app = FastAPI(
        title="skillflow",
        description="Run multi-step automation workflows on demand or on a schedule.",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["*"],
    )

    from skillflow.api.routes import executors, health, runs, status
    app.include_router(runs.router, prefix="/v1")
    app.include_router(status.router, prefix="/v1")
    app.include_router(executors.router, prefix="/v1")
    app.include_router(health.router)

    return app


app = create_app()
