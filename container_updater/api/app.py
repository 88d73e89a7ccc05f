"""
FastAPI application factory.
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from container_updater import __version__
from container_updater.api.admission import AdmissionGate
from container_updater.api.routes import create_routes
from container_updater.config.settings import UpdaterConfig
from container_updater.engine import DockerEngineClient, EngineClient
from container_updater.errors import UpdaterError
from container_updater.image_resolver import (
    CredentialsProvider,
    DockerConfigCredentials,
    ImageResolver,
)
from container_updater.metrics import UpdaterMetrics
from container_updater.orchestrator import ReplacementOrchestrator
from container_updater.service import ReplacementService

logger = logging.getLogger(__name__)


def create_app(
    config: UpdaterConfig,
    engine: Optional[EngineClient] = None,
    credentials: Optional[CredentialsProvider] = None,
    metrics: Optional[UpdaterMetrics] = None,
) -> FastAPI:
    """
    Build the webhook application.

    Args:
        config: Process configuration
        engine: Engine client (connects to the local daemon when None)
        credentials: Registry credentials (Docker client config when None)
        metrics: Metrics holder (fresh registry when None)

    Returns:
        Configured FastAPI app
    """
    if engine is None:
        engine = DockerEngineClient.from_env(max_pool_size=config.engine_pool_size)
    if credentials is None:
        credentials = DockerConfigCredentials()
    if metrics is None:
        metrics = UpdaterMetrics()

    orchestrator = ReplacementOrchestrator(engine, ImageResolver(engine, credentials))

    app = FastAPI(title="container-updater", version=__version__)
    app.state.config = config
    app.state.metrics = metrics
    app.state.admission_gate = AdmissionGate(config)
    app.state.replacement_service = ReplacementService(
        orchestrator,
        metrics,
        timeout_seconds=config.request_timeout_seconds,
        serialize_same_name=config.serialize_same_name,
    )

    @app.exception_handler(UpdaterError)
    async def updater_exception_handler(request: Request, exc: UpdaterError) -> JSONResponse:
        if exc.status_code < 500:
            metrics.observe_rejection(type(exc).__name__)
            logger.info(f"Rejected {request.method} {request.url.path}: {exc}")
        else:
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

    app.include_router(create_routes())
    return app
