"""Configuration for container-updater."""

from container_updater.config.settings import UpdaterConfig

__all__ = ["UpdaterConfig"]
