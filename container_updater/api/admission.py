"""
Admission gate for the update webhook.

Checks run in this order, and nothing is decoded until the signature holds:

1. signature header (equality with the shared secret, or HMAC-SHA256 of the body)
2. method is POST
3. content type is application/json
4. body decodes to {"name": str, "image": str}
5. container name is in the allow-list, when one is configured
"""

import hashlib
import hmac
import json
import logging

from fastapi import Request
from pydantic import ValidationError as PydanticValidationError

from container_updater.config.settings import UpdaterConfig
from container_updater.errors import AuthorizationError, SignatureError, ValidationError
from container_updater.models import ReplacementRequest

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Signature"


def sign_body(secret_key: str, body: bytes) -> str:
    """Hex HMAC-SHA256 of a request body."""
    return hmac.new(secret_key.encode(), body, hashlib.sha256).hexdigest()


class AdmissionGate:
    """Authenticates and validates inbound replacement requests."""

    def __init__(self, config: UpdaterConfig):
        self.config = config

    async def admit(self, request: Request) -> ReplacementRequest:
        """
        Turn an HTTP request into a ReplacementRequest or reject it.

        Raises:
            SignatureError: Signature missing or mismatched
            ValidationError: Wrong method, content type or payload
            AuthorizationError: Container not in the allow-list
        """
        signature = request.headers.get(SIGNATURE_HEADER, "")
        if not signature:
            raise SignatureError("Missing signature")

        body = await request.body()
        if not self._signature_matches(signature, body):
            logger.warning(f"Rejected request with bad signature from {_client(request)}")
            raise SignatureError("Signature mismatched")

        if request.method != "POST":
            raise ValidationError("Only POST requests allowed")

        content_type = request.headers.get("content-type", "")
        if content_type.split(";")[0].strip().lower() != "application/json":
            raise ValidationError("Request body must be json")

        replacement = self._decode(body)

        if not self.config.is_allowed(replacement.container_name):
            logger.warning(f"Container is not in allow list: {replacement.container_name}")
            raise AuthorizationError("Container is not in allow list")

        return replacement

    def _signature_matches(self, signature: str, body: bytes) -> bool:
        if self.config.signature_mode == "hmac":
            expected = sign_body(self.config.secret_key, body)
            return hmac.compare_digest(signature.lower().encode(), expected.encode())
        return hmac.compare_digest(signature.encode(), self.config.secret_key.encode())

    @staticmethod
    def _decode(body: bytes) -> ReplacementRequest:
        try:
            payload = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise ValidationError("Bad request: body is not valid JSON")

        if not isinstance(payload, dict):
            raise ValidationError("Bad request: body must be a JSON object")

        try:
            return ReplacementRequest.model_validate(payload)
        except PydanticValidationError as e:
            fields = sorted({str(err["loc"][0]) for err in e.errors() if err["loc"]})
            raise ValidationError(f"Bad request: invalid or missing {', '.join(fields)}")


def _client(request: Request) -> str:
    return request.client.host if request.client else "unknown"
