"""
Replacement orchestrator.

Turns "container C running image A" into "container C running image B":

    inspect -> resolve image -> derive config -> stop -> remove
        -> create -> reconnect networks -> start

Each run is a single attempt. Failures are returned as tagged
ReplacementOutcome values; only a failed stop is tolerated, and only a failed
start triggers a compensating action (force-removing the new container).
"""

import copy
import logging
from typing import Any, Dict, Tuple

from container_updater.engine import EngineClient
from container_updater.errors import EngineError, InternalError, PullError
from container_updater.image_resolver import ImageResolverProtocol
from container_updater.logging_config import log_replacement_operation
from container_updater.models import (
    ContainerSnapshot,
    ReplacementOutcome,
    ReplacementRequest,
    ReplacementStage,
)

logger = logging.getLogger(__name__)


def derive_config(
    snapshot: ContainerSnapshot, target_image: str
) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """
    Copy a snapshot's runtime and host config with the image replaced.

    Args:
        snapshot: State of the container being replaced
        target_image: Image the new container runs

    Returns:
        Tuple of (runtime_config, host_config)

    Raises:
        InternalError: If the snapshot's config cannot be copied
    """
    if not isinstance(snapshot.runtime_config, dict) or not isinstance(
        snapshot.host_config, dict
    ):
        raise InternalError(f"Malformed configuration in snapshot of {snapshot.name}")

    try:
        runtime_config = copy.deepcopy(snapshot.runtime_config)
        host_config = copy.deepcopy(snapshot.host_config)
    except (TypeError, copy.Error) as e:
        raise InternalError(f"Cannot copy configuration of {snapshot.name}: {e}") from e

    runtime_config["Image"] = target_image
    return runtime_config, host_config


class ReplacementOrchestrator:
    """Replaces a container in place with one running a new image."""

    def __init__(self, engine: EngineClient, image_resolver: ImageResolverProtocol) -> None:
        """
        Initialize orchestrator.

        Args:
            engine: Engine client adapter
            image_resolver: Resolver that makes target images available locally
        """
        self.engine = engine
        self.image_resolver = image_resolver

    def replace(self, request: ReplacementRequest) -> ReplacementOutcome:
        """
        Run the full replacement sequence for one request.

        Args:
            request: Validated replacement request

        Returns:
            Success with the new container id, or a failure tagged with its stage

        Raises:
            InternalError: If the existing container's config is unusable
        """
        name = request.container_name
        image = request.target_image

        try:
            snapshot = self.engine.inspect(name)
        except EngineError as e:
            return self._fail(request, ReplacementStage.INSPECT, e)

        logger.info(f"Replacing {name} ({snapshot.id[:12]}): {snapshot.image} -> {image}")

        try:
            self.image_resolver.ensure_image(image)
        except PullError as e:
            return self._fail(request, ReplacementStage.PULL, e)

        runtime_config, host_config = derive_config(snapshot, image)

        try:
            self.engine.stop_container(name)
        except EngineError as e:
            logger.warning(f"Error stopping old container {name}, removing anyway: {e}")

        try:
            self.engine.remove_container(name)
        except EngineError as e:
            return self._fail(request, ReplacementStage.REMOVE, e)

        try:
            new_id = self.engine.create_container(name, runtime_config, host_config)
        except EngineError as e:
            logger.critical(
                f"Old container {name} was removed but its replacement could not be "
                f"created; no container named {name} exists now"
            )
            return self._fail(request, ReplacementStage.CREATE, e)

        for network in sorted(snapshot.attached_networks):
            try:
                self.engine.connect_network(network, new_id)
            except EngineError as e:
                logger.error(
                    f"New container {name} ({new_id[:12]}) exists but is not attached to "
                    f"network {network}; leaving it in place"
                )
                return self._fail(request, ReplacementStage.NETWORK, e)

        try:
            self.engine.start_container(new_id)
        except EngineError as e:
            recovered = self._cleanup(new_id)
            return self._fail(request, ReplacementStage.START, e, recovery_performed=recovered)

        logger.info(f"Updated {name} to image {image} ({new_id[:12]})")
        log_replacement_operation(name, image, "success", container_id=new_id)
        return ReplacementOutcome.succeeded(new_id)

    def _cleanup(self, container_id: str) -> bool:
        """Force-remove a container that was created but could not start."""
        try:
            self.engine.remove_container(container_id, force=True)
        except EngineError as e:
            logger.error(f"Cleanup of unstartable container {container_id[:12]} failed: {e}")
            return False
        logger.info(f"Removed unstartable container {container_id[:12]}")
        return True

    def _fail(
        self,
        request: ReplacementRequest,
        stage: ReplacementStage,
        cause: Exception,
        recovery_performed: bool = False,
    ) -> ReplacementOutcome:
        outcome = ReplacementOutcome.failed(stage, cause, recovery_performed)
        if outcome.is_safe_failure:
            logger.warning(
                f"Replacement of {request.container_name} aborted at {stage.value}, "
                f"nothing was changed: {cause}"
            )
        else:
            logger.error(
                f"Replacement of {request.container_name} failed at {stage.value} "
                f"(recovery performed: {recovery_performed}): {cause}"
            )
        log_replacement_operation(
            request.container_name,
            request.target_image,
            stage.value,
            error=str(cause),
            recovery_performed=recovery_performed,
        )
        return outcome
