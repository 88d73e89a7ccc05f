"""HTTP front door for container-updater."""

from container_updater.api.app import create_app

__all__ = ["create_app"]
