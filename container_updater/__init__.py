"""container-updater - Replace running containers in place from a webhook."""

__version__ = "1.0.0"
