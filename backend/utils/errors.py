"""Application error taxonomy.

Every error maps to one HTTP status; server.py turns them into
``{"ok": false, "error": message}`` responses.
"""
from fastapi import status


class AppError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(AppError):
    """Missing or malformed input."""
    status_code = status.HTTP_400_BAD_REQUEST


class AuthenticationError(AppError):
    """Missing, invalid or expired token; bad credentials."""
    status_code = status.HTTP_401_UNAUTHORIZED


class AuthorizationError(AppError):
    """Role or ownership mismatch."""
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND


class ExternalServiceError(AppError):
    """Payment processor or notification failure."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class WebhookSignatureError(ValidationError):
    """Webhook payload could not be verified; nothing was processed."""
