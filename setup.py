#!/usr/bin/env python3
"""
Setup script for container-updater.
"""

from setuptools import setup, find_packages

setup(
    name="container-updater",
    version="1.0.0",
    description="Webhook that replaces a running container in place with a new image",
    packages=find_packages(include=["container_updater", "container_updater.*"]),
    python_requires=">=3.10",
    install_requires=[
        "fastapi>=0.100",
        "uvicorn>=0.29",
        "pydantic>=2.0",
        "docker>=7.0",
        "requests>=2.31",
        "prometheus-client>=0.17",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
            "httpx>=0.24",
        ],
    },
    entry_points={
        "console_scripts": [
            "container-updater=container_updater.__main__:main",
        ],
    },
)
