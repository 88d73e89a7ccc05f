"""
Webhook and metrics routes.
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from container_updater.api.admission import AdmissionGate
from container_updater.metrics import UpdaterMetrics
from container_updater.models import UpdateResponse
from container_updater.service import ReplacementService

logger = logging.getLogger(__name__)

# Every method reaches the admission gate, which answers non-POST with a 400
UPDATE_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


def get_admission_gate(request: Request) -> AdmissionGate:
    """Get admission gate from app state."""
    if not hasattr(request.app.state, "admission_gate"):
        raise HTTPException(status_code=500, detail="Admission gate not initialized")
    gate: AdmissionGate = request.app.state.admission_gate
    return gate


def get_replacement_service(request: Request) -> ReplacementService:
    """Get replacement service from app state."""
    if not hasattr(request.app.state, "replacement_service"):
        raise HTTPException(status_code=500, detail="Replacement service not initialized")
    service: ReplacementService = request.app.state.replacement_service
    return service


def get_metrics(request: Request) -> UpdaterMetrics:
    """Get metrics from app state."""
    if not hasattr(request.app.state, "metrics"):
        raise HTTPException(status_code=500, detail="Metrics not initialized")
    metrics: UpdaterMetrics = request.app.state.metrics
    return metrics


def create_routes() -> APIRouter:
    """
    Create the API router.

    Returns:
        Router with /update and /metrics
    """
    router = APIRouter()

    @router.api_route("/update", methods=UPDATE_METHODS, tags=["update"])
    async def update_container(
        request: Request,
        gate: AdmissionGate = Depends(get_admission_gate),
        service: ReplacementService = Depends(get_replacement_service),
    ) -> Dict[str, Any]:
        """
        Replace a running container with one on a new image.

        Body: {"name": "<container>", "image": "<image reference>"}
        """
        replacement = await gate.admit(request)
        await service.replace(replacement)
        return UpdateResponse().model_dump(by_alias=True)

    @router.get("/metrics", tags=["metrics"])
    async def metrics_endpoint(metrics: UpdaterMetrics = Depends(get_metrics)) -> Response:
        """Prometheus metrics."""
        return Response(content=metrics.render(), media_type=metrics.content_type)

    return router
