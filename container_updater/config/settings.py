"""
Configuration for container-updater.

Read once from the environment at process start and passed explicitly to the
components that need it.
"""

import json
import logging
import os
import secrets
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)

SIGNATURE_MODES = ("secret", "hmac")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class UpdaterConfig(BaseModel):
    """Immutable process-wide configuration."""

    model_config = ConfigDict(frozen=True)

    secret_key: str = Field(..., min_length=1, description="Shared secret for signatures")
    signature_mode: str = Field("secret", description="'secret' equality or 'hmac' of the body")
    request_timeout_seconds: int = Field(300, gt=0, description="Deadline for one request")
    host: str = Field("0.0.0.0", description="Listen address")
    port: int = Field(8080, gt=0, lt=65536, description="Listen port")
    container_allow_list: List[str] = Field(
        default_factory=list, description="Container names allowed to be replaced"
    )
    log_level: str = Field("INFO", description="Console log level")
    log_dir: Optional[str] = Field(None, description="Directory for rotating log files")
    log_json: bool = Field(False, description="JSON formatting for file logs")
    serialize_same_name: bool = Field(
        True, description="Serialize concurrent replacements of the same container"
    )
    engine_pool_size: int = Field(10, gt=0, description="Docker client connection pool size")

    @field_validator("signature_mode")
    @classmethod
    def validate_signature_mode(cls, value: str) -> str:
        value = value.lower()
        if value not in SIGNATURE_MODES:
            raise ValueError(f"signature_mode must be one of {', '.join(SIGNATURE_MODES)}")
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        value = value.upper()
        if value not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        return value

    def is_allowed(self, container_name: str) -> bool:
        """An empty allow-list allows every container."""
        return not self.container_allow_list or container_name in self.container_allow_list

    def redacted(self) -> Dict[str, Any]:
        """Configuration as a dict with the secret hidden."""
        data = self.model_dump()
        data["secret_key"] = "***"
        return data

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "UpdaterConfig":
        """
        Build configuration from environment variables.

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Returns:
            Loaded configuration
        """
        env = os.environ if environ is None else environ

        secret_key = env.get("SECRET_KEY", "")
        if not secret_key:
            secret_key = secrets.token_hex(16)
            logger.info(f"Temporarily generated secret key: {secret_key}")

        return cls(
            secret_key=secret_key,
            signature_mode=env.get("SIGNATURE_MODE", "secret"),
            request_timeout_seconds=_int_from_env(env, "REQUEST_TIMEOUT_SECONDS", 300),
            host=env.get("HOST", "0.0.0.0"),
            port=_int_from_env(env, "PORT", 8080),
            container_allow_list=_allow_list_from_env(env),
            log_level=env.get("LOG_LEVEL", "INFO"),
            log_dir=env.get("LOG_DIR") or None,
            log_json=_bool_from_env(env, "LOG_JSON", False),
            serialize_same_name=_bool_from_env(env, "SERIALIZE_SAME_NAME", True),
            engine_pool_size=_int_from_env(env, "ENGINE_POOL_SIZE", 10),
        )


def _int_from_env(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Ignoring invalid {key}={raw!r}, using {default}")
        return default


def _bool_from_env(env: Mapping[str, str], key: str, default: bool) -> bool:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _allow_list_from_env(env: Mapping[str, str]) -> List[str]:
    raw = env.get("CONTAINER_ALLOW_LIST")
    if not raw:
        return []

    try:
        names = json.loads(raw)
    except json.JSONDecodeError:
        logger.error("Malformed CONTAINER_ALLOW_LIST")
        return []

    if not isinstance(names, list) or not all(isinstance(n, str) for n in names):
        logger.error("Malformed CONTAINER_ALLOW_LIST")
        return []

    logger.debug(f"CONTAINER_ALLOW_LIST: {names}")
    return names
