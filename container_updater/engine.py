"""
Container engine client adapter.

A thin synchronous facade over the Docker Engine API. The orchestrator and
image resolver only see the EngineClient protocol, so tests can substitute an
in-memory engine.
"""

import logging
from typing import Any, Dict, Iterator, Optional, Protocol, runtime_checkable

import docker
import requests
from docker.errors import DockerException, NotFound

from container_updater.errors import ContainerNotFoundError, EngineError
from container_updater.models import ContainerSnapshot

logger = logging.getLogger(__name__)

# Errors the docker SDK raises for daemon and transport failures
ENGINE_ERRORS = (DockerException, requests.exceptions.RequestException)


@runtime_checkable
class EngineClient(Protocol):
    """Engine operations consumed by the orchestrator and image resolver."""

    def inspect(self, name: str) -> ContainerSnapshot:
        """Read a container's state. Raises ContainerNotFoundError if absent."""
        ...

    def image_exists(self, ref: str) -> bool:
        """Is the image present locally?"""
        ...

    def pull_image(
        self, ref: str, auth_config: Optional[Dict[str, Any]] = None
    ) -> Iterator[Dict[str, Any]]:
        """Pull an image, yielding progress messages until completion."""
        ...

    def stop_container(self, name: str) -> None:
        ...

    def remove_container(self, name: str, force: bool = False) -> None:
        ...

    def create_container(
        self, name: str, runtime_config: Dict[str, Any], host_config: Dict[str, Any]
    ) -> str:
        """Create a container and return its id."""
        ...

    def connect_network(self, network: str, container_id: str) -> None:
        ...

    def start_container(self, container_id: str) -> None:
        ...


class DockerEngineClient:
    """
    EngineClient backed by the docker SDK's low-level API client.

    The underlying requests session is connection-pooled, so one instance is
    shared by all concurrent replacements.
    """

    def __init__(self, client: docker.DockerClient):
        """
        Initialize the adapter.

        Args:
            client: Docker client to issue engine calls with
        """
        self.client = client

    @classmethod
    def from_env(cls, max_pool_size: int = 10) -> "DockerEngineClient":
        """Connect using DOCKER_HOST and friends, negotiating the API version."""
        try:
            client = docker.from_env(version="auto", max_pool_size=max_pool_size)
        except ENGINE_ERRORS as e:
            raise EngineError(f"Cannot connect to container engine: {e}", "connect") from e
        logger.debug(f"Connected to container engine (API {client.api.api_version})")
        return cls(client)

    def inspect(self, name: str) -> ContainerSnapshot:
        try:
            attrs = self.client.api.inspect_container(name)
        except NotFound as e:
            raise ContainerNotFoundError(f"No such container: {name}", "inspect") from e
        except ENGINE_ERRORS as e:
            raise EngineError(f"Failed to inspect container {name}: {e}", "inspect") from e

        networks = (attrs.get("NetworkSettings") or {}).get("Networks") or {}
        return ContainerSnapshot(
            id=attrs["Id"],
            name=attrs.get("Name", name).lstrip("/"),
            runtime_config=attrs.get("Config") or {},
            host_config=attrs.get("HostConfig") or {},
            attached_networks=frozenset(networks),
        )

    def image_exists(self, ref: str) -> bool:
        try:
            self.client.api.inspect_image(ref)
            return True
        except NotFound:
            return False
        except ENGINE_ERRORS as e:
            raise EngineError(f"Failed to inspect image {ref}: {e}", "inspect_image") from e

    def pull_image(
        self, ref: str, auth_config: Optional[Dict[str, Any]] = None
    ) -> Iterator[Dict[str, Any]]:
        # auth_config=None makes the SDK consult the credential store itself;
        # credentials are resolved by the caller, so an empty config means anonymous
        try:
            stream = self.client.api.pull(
                ref, stream=True, decode=True, auth_config=auth_config or {}
            )
            for progress in stream:
                # The daemon reports failures inside the stream with a 200 status
                if "error" in progress:
                    raise EngineError(f"Failed to pull image {ref}: {progress['error']}", "pull")
                yield progress
        except ENGINE_ERRORS as e:
            raise EngineError(f"Failed to pull image {ref}: {e}", "pull") from e

    def stop_container(self, name: str) -> None:
        try:
            self.client.api.stop(name)
        except ENGINE_ERRORS as e:
            raise EngineError(f"Failed to stop container {name}: {e}", "stop") from e

    def remove_container(self, name: str, force: bool = False) -> None:
        try:
            self.client.api.remove_container(name, force=force)
        except ENGINE_ERRORS as e:
            raise EngineError(f"Failed to remove container {name}: {e}", "remove") from e

    def create_container(
        self, name: str, runtime_config: Dict[str, Any], host_config: Dict[str, Any]
    ) -> str:
        config = dict(runtime_config)
        config["HostConfig"] = host_config
        try:
            response = self.client.api.create_container_from_config(config, name=name)
        except ENGINE_ERRORS as e:
            raise EngineError(f"Failed to create container {name}: {e}", "create") from e

        for warning in response.get("Warnings") or []:
            logger.warning(f"Engine warning creating {name}: {warning}")

        container_id = response.get("Id")
        if not container_id:
            raise EngineError(f"Engine returned no id for container {name}", "create")
        return str(container_id)

    def connect_network(self, network: str, container_id: str) -> None:
        try:
            self.client.api.connect_container_to_network(container_id, network)
        except ENGINE_ERRORS as e:
            raise EngineError(
                f"Failed to connect {container_id[:12]} to network {network}: {e}", "network"
            ) from e

    def start_container(self, container_id: str) -> None:
        try:
            self.client.api.start(container_id)
        except ENGINE_ERRORS as e:
            raise EngineError(f"Failed to start container {container_id[:12]}: {e}", "start") from e
