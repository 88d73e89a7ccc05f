"""
Data models for container-updater.

Keep it simple. Keep it typed. Keep it frozen.
"""

from enum import Enum
from typing import Any, Dict, FrozenSet, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ReplacementStage(str, Enum):
    """Stages at which a replacement run can terminate with a failure."""

    INSPECT = "inspect"
    PULL = "pull"
    REMOVE = "remove"
    CREATE = "create"
    NETWORK = "network"
    START = "start"


# Failures at these stages happen before the old container is touched.
SAFE_STAGES = frozenset({ReplacementStage.INSPECT, ReplacementStage.PULL})


class ReplacementRequest(BaseModel):
    """A validated request to move a container onto a new image."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, str_strip_whitespace=True)

    container_name: str = Field(..., alias="name", min_length=1, description="Container name")
    target_image: str = Field(
        ..., alias="image", min_length=1, description="Registry-qualified image reference"
    )


class UpdateResponse(BaseModel):
    """Body returned on a successful replacement."""

    model_config = ConfigDict(populate_by_name=True)

    ok: bool = Field(True, alias="OK")


class ContainerSnapshot(BaseModel):
    """Pre-replacement state of a container, as read from the engine."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    runtime_config: Dict[str, Any] = Field(default_factory=dict)
    host_config: Dict[str, Any] = Field(default_factory=dict)
    attached_networks: FrozenSet[str] = Field(default_factory=frozenset)

    @property
    def image(self) -> Optional[str]:
        """Image reference the container was created from."""
        return (self.runtime_config or {}).get("Image")


class ReplacementOutcome(BaseModel):
    """Terminal result of one orchestration run."""

    model_config = ConfigDict(frozen=True)

    success: bool
    container_id: Optional[str] = None
    stage: Optional[ReplacementStage] = None
    cause: Optional[str] = None
    recovery_performed: bool = False

    @model_validator(mode="after")
    def failure_has_stage(self) -> "ReplacementOutcome":
        if not self.success and self.stage is None:
            raise ValueError("A failed outcome must name the stage it failed at")
        return self

    @classmethod
    def succeeded(cls, container_id: str) -> "ReplacementOutcome":
        return cls(success=True, container_id=container_id)

    @classmethod
    def failed(
        cls,
        stage: ReplacementStage,
        cause: Exception,
        recovery_performed: bool = False,
    ) -> "ReplacementOutcome":
        return cls(
            success=False,
            stage=stage,
            cause=str(cause),
            recovery_performed=recovery_performed,
        )

    @property
    def is_safe_failure(self) -> bool:
        """Did the run fail before anything was changed on the engine?"""
        return not self.success and self.stage in SAFE_STAGES

    @property
    def label(self) -> str:
        """Outcome label used for metrics and logs."""
        if self.success or self.stage is None:
            return "success"
        return self.stage.value
