# poliprint/core/errors.py
"""
Error taxonomy shared by services and routers.

Every error carries the HTTP status it maps to and a short `error` title;
`poliprint.main` turns them into the storefront error body:

    {"success": false, "error": "<title>", "message": "<details>"}
"""

from fastapi import status


class StorefrontError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error: str = "Internal error"

    def __init__(self, message: str, *, error: str | None = None):
        super().__init__(message)
        self.message = message
        if error is not None:
            self.error = error

    def to_body(self) -> dict:
        return {"success": False, "error": self.error, "message": self.message}


class StorefrontValidationError(StorefrontError):
    """Missing or malformed caller input. Never retried automatically."""

    status_code = status.HTTP_400_BAD_REQUEST
    error = "Missing required parameters"


class InvalidSignatureError(StorefrontError):
    """Webhook payload failed the integrity check."""

    status_code = status.HTTP_403_FORBIDDEN
    error = "Invalid signature"


class PaymentPayloadError(StorefrontError):
    """Signed payload could not be decoded into a payment event."""

    status_code = status.HTTP_400_BAD_REQUEST
    error = "Invalid payment payload"


class UpstreamServiceError(StorefrontError):
    """Remote carrier / payment API failed or timed out. Safe to retry."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error = "Upstream service error"


class NotFoundError(StorefrontError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "Not found"


class InvalidTransitionError(StorefrontError):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "Invalid status transition"
