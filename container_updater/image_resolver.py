"""
Image resolver.

Makes sure a target image is present on the engine before the old container
is touched, pulling it with registry credentials when it is missing.
"""

import logging
from typing import Any, Dict, Optional, Protocol, runtime_checkable

import docker.auth
from docker.credentials.errors import StoreError
from docker.errors import DockerException

from container_updater.engine import EngineClient
from container_updater.errors import EngineError, PullError

logger = logging.getLogger(__name__)


def registry_host(ref: str) -> Optional[str]:
    """
    Registry host an image reference points at.

    Only the component before the first "/" counts, and only when it looks
    like a host (contains "." or ":"). Anything else lives on the default
    public registry.

    Args:
        ref: Image reference (e.g., "ghcr.io/org/app:1.0")

    Returns:
        Registry host, or None for the default registry
    """
    head, sep, _ = ref.partition("/")
    if sep and head and ("." in head or ":" in head):
        return head
    return None


@runtime_checkable
class CredentialsProvider(Protocol):
    """Supplies registry auth for a registry host."""

    def get(self, registry: str) -> Optional[Dict[str, Any]]:
        """Return an auth config for the registry, or None."""
        ...


class DockerConfigCredentials:
    """Credentials from the Docker client config file and its credential helpers."""

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize provider.

        Args:
            config_path: Explicit config.json path (defaults to DOCKER_CONFIG or ~/.docker)
        """
        self.config_path = config_path

    def get(self, registry: str) -> Optional[Dict[str, Any]]:
        # Reloaded per pull so `docker login` takes effect without a restart
        auth = docker.auth.load_config(config_path=self.config_path)
        return auth.resolve_authconfig(registry)


class ImageResolverProtocol(Protocol):
    def ensure_image(self, ref: str) -> None:
        ...


class ImageResolver:
    """Ensures images are available locally, pulling only when absent."""

    def __init__(
        self, engine: EngineClient, credentials: Optional[CredentialsProvider] = None
    ) -> None:
        """
        Initialize image resolver.

        Args:
            engine: Engine client to query and pull with
            credentials: Optional provider of private registry credentials
        """
        self.engine = engine
        self.credentials = credentials

    def ensure_image(self, ref: str) -> None:
        """
        Make sure ``ref`` is present on the engine.

        Raises:
            PullError: If presence could not be checked or the pull failed
        """
        try:
            if self.engine.image_exists(ref):
                logger.debug(f"Image {ref} already present, skipping pull")
                return
        except EngineError as e:
            raise PullError(ref, e) from e

        auth_config = self._lookup_credentials(ref)

        logger.info(f"Pulling image {ref}")
        try:
            for progress in self.engine.pull_image(ref, auth_config=auth_config):
                self._log_progress(ref, progress)
        except EngineError as e:
            raise PullError(ref, e) from e

        logger.info(f"Pulled image {ref}")

    def _lookup_credentials(self, ref: str) -> Optional[Dict[str, Any]]:
        """Credential problems never block a pull; it proceeds unauthenticated."""
        registry = registry_host(ref)
        if registry is None or self.credentials is None:
            return None

        try:
            auth_config = self.credentials.get(registry)
        except (DockerException, StoreError, OSError, ValueError) as e:
            logger.error(f"Credential lookup for {registry} failed: {e}")
            return None

        if auth_config:
            logger.debug(f"Using stored credentials for {registry}")
        else:
            logger.debug(f"No stored credentials for {registry}")
        return auth_config

    @staticmethod
    def _log_progress(ref: str, progress: Dict[str, Any]) -> None:
        status = progress.get("status")
        if not status:
            return
        layer = progress.get("id")
        detail = progress.get("progress")
        parts = [p for p in (layer, status, detail) if p]
        logger.debug(f"{ref}: {' '.join(parts)}")
