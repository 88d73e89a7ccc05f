"""
Pytest configuration for container-updater tests.
"""

import os


def pytest_configure(config):
    """
    Keep the developer's environment from leaking into configuration tests.
    This runs very early in the pytest lifecycle.
    """
    os.environ.pop("CONTAINER_ALLOW_LIST", None)
    os.environ.pop("SIGNATURE_MODE", None)
