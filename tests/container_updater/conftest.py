"""
Shared fixtures for container-updater tests.

FakeEngine models the engine as a mapping from container name to state, so
every orchestration branch can be driven deterministically.
"""

import itertools
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Set, Tuple

import pytest

from container_updater.config.settings import UpdaterConfig
from container_updater.errors import ContainerNotFoundError, EngineError
from container_updater.models import ContainerSnapshot

TEST_SECRET = "test-secret-key"


@dataclass
class FakeContainer:
    id: str
    name: str
    runtime_config: Dict[str, Any]
    host_config: Dict[str, Any]
    networks: Set[str] = field(default_factory=set)
    running: bool = False

    @property
    def image(self) -> str:
        return self.runtime_config["Image"]


class FakeEngine:
    """In-memory EngineClient."""

    def __init__(self) -> None:
        self.containers: Dict[str, FakeContainer] = {}
        self.images: Set[str] = set()
        self.calls: List[Tuple[str, Tuple[Any, ...]]] = []
        self.pull_auth: List[Optional[Dict[str, Any]]] = []
        self._failures: Dict[str, Tuple[Exception, Callable[..., bool]]] = {}
        self._ids = itertools.count(1)

    # -- test helpers -----------------------------------------------------

    def add_container(
        self,
        name: str,
        image: str,
        networks: Optional[Set[str]] = None,
        running: bool = True,
        env: Optional[List[str]] = None,
    ) -> FakeContainer:
        container = FakeContainer(
            id=self._new_id(),
            name=name,
            runtime_config={"Image": image, "Env": env or [], "Labels": {"app": name}},
            host_config={"RestartPolicy": {"Name": "unless-stopped"}, "Binds": ["/data:/data"]},
            networks=set(networks or ()),
            running=running,
        )
        self.containers[name] = container
        self.images.add(image)
        return container

    def fail_on(
        self,
        operation: str,
        error: Optional[Exception] = None,
        when: Callable[..., bool] = lambda *args: True,
    ) -> None:
        """Make an operation raise (optionally only when ``when(*args)`` holds)."""
        self._failures[operation] = (error or EngineError(f"{operation} failed"), when)

    def mutating_calls(self) -> List[str]:
        readonly = {"inspect", "image_exists"}
        return [op for op, _ in self.calls if op not in readonly]

    def operations(self) -> List[str]:
        return [op for op, _ in self.calls]

    def find(self, name_or_id: str) -> Optional[FakeContainer]:
        if name_or_id in self.containers:
            return self.containers[name_or_id]
        for container in self.containers.values():
            if container.id == name_or_id:
                return container
        return None

    # -- EngineClient ------------------------------------------------------

    def inspect(self, name: str) -> ContainerSnapshot:
        self._record("inspect", name)
        container = self.find(name)
        if container is None:
            raise ContainerNotFoundError(f"No such container: {name}", "inspect")
        return ContainerSnapshot(
            id=container.id,
            name=container.name,
            runtime_config=container.runtime_config,
            host_config=container.host_config,
            attached_networks=frozenset(container.networks),
        )

    def image_exists(self, ref: str) -> bool:
        self._record("image_exists", ref)
        return ref in self.images

    def pull_image(
        self, ref: str, auth_config: Optional[Dict[str, Any]] = None
    ) -> Iterator[Dict[str, Any]]:
        self._record("pull_image", ref)
        self.pull_auth.append(auth_config)
        yield {"status": "Pulling from library", "id": ref}
        yield {"status": "Download complete", "id": "layer1", "progress": "[=====>]"}
        self.images.add(ref)
        yield {"status": f"Status: Downloaded newer image for {ref}"}

    def stop_container(self, name: str) -> None:
        self._record("stop_container", name)
        container = self._require(name)
        container.running = False

    def remove_container(self, name: str, force: bool = False) -> None:
        self._record("remove_container", name, force)
        container = self._require(name)
        if container.running and not force:
            raise EngineError(f"cannot remove running container {name}", "remove")
        del self.containers[container.name]

    def create_container(
        self, name: str, runtime_config: Dict[str, Any], host_config: Dict[str, Any]
    ) -> str:
        self._record("create_container", name, runtime_config, host_config)
        if name in self.containers:
            raise EngineError(f"Conflict. The container name {name} is already in use", "create")
        container = FakeContainer(
            id=self._new_id(),
            name=name,
            runtime_config=runtime_config,
            host_config=host_config,
        )
        self.containers[name] = container
        return container.id

    def connect_network(self, network: str, container_id: str) -> None:
        self._record("connect_network", network, container_id)
        self._require(container_id).networks.add(network)

    def start_container(self, container_id: str) -> None:
        self._record("start_container", container_id)
        self._require(container_id).running = True

    # -- internals ---------------------------------------------------------

    def _record(self, operation: str, *args: Any) -> None:
        self.calls.append((operation, args))
        if operation in self._failures:
            error, when = self._failures[operation]
            if when(*args):
                raise error

    def _require(self, name_or_id: str) -> FakeContainer:
        container = self.find(name_or_id)
        if container is None:
            raise EngineError(f"No such container: {name_or_id}")
        return container

    def _new_id(self) -> str:
        return f"{next(self._ids):064x}"


@pytest.fixture
def fake_engine():
    """Engine with container 'web' running app:1.0 on network net1."""
    engine = FakeEngine()
    engine.add_container("web", "app:1.0", networks={"net1"}, env=["MODE=production"])
    return engine


@pytest.fixture
def config():
    """Configuration with a known secret and no allow-list."""
    return UpdaterConfig(secret_key=TEST_SECRET)
