"""
Error taxonomy for container-updater.

Every error carries the HTTP status it is surfaced with, so the API layer
can translate any of them with a single exception handler.
"""

from typing import Optional


class UpdaterError(Exception):
    """Base class for all container-updater errors."""

    status_code: int = 500
    public_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.public_message)

    @property
    def detail(self) -> str:
        """Text that is safe to return to the caller."""
        return self.public_message


class ValidationError(UpdaterError):
    """Malformed or missing request fields, wrong method or content type."""

    status_code = 400

    @property
    def detail(self) -> str:
        return str(self)


class AuthorizationError(UpdaterError):
    """Request is well formed but not allowed (e.g. name not in the allow-list)."""

    status_code = 400

    @property
    def detail(self) -> str:
        return str(self)


class SignatureError(AuthorizationError):
    """Signature header missing or mismatched."""

    status_code = 401
    public_message = "Invalid signature"

    @property
    def detail(self) -> str:
        return self.public_message


class EngineError(UpdaterError):
    """Any failure reported by the container engine."""

    def __init__(self, message: str, operation: Optional[str] = None):
        super().__init__(message)
        self.operation = operation


class ContainerNotFoundError(EngineError):
    """The engine has no container with the requested name."""


class PullError(UpdaterError):
    """The target image could not be made available locally."""

    def __init__(self, image: str, cause: Exception):
        super().__init__(f"Failed to pull image {image}: {cause}")
        self.image = image
        self.cause = cause


class InternalError(UpdaterError):
    """A snapshot that should always be well formed could not be used."""


class ReplacementFailedError(UpdaterError):
    """An orchestration run ended in a terminal failure."""

    def __init__(self, container_name: str, stage: str, cause: Optional[str] = None):
        super().__init__(f"Replacing {container_name} failed at stage '{stage}': {cause}")
        self.container_name = container_name
        self.stage = stage

    @property
    def detail(self) -> str:
        return f"Replacement failed at stage '{self.stage}'"


class UpdaterTimeoutError(UpdaterError):
    """The request-wide deadline expired."""

    status_code = 503

    def __init__(self, timeout_seconds: int):
        super().__init__(f"Exceeded configured timeout of {timeout_seconds}s.")
        self.timeout_seconds = timeout_seconds

    @property
    def detail(self) -> str:
        return str(self)
