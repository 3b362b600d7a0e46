# app/core/errors.py
from fastapi import status


class GalleryError(Exception):
    """Base for errors scoped to a single gallery operation."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    default_detail: str = "Request failed"

    def __init__(self, detail: str | None = None):
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class ValidationError(GalleryError):
    """Bad URL or malformed credentials. Nothing was written."""

    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_detail = "Invalid input"


class ConflictError(GalleryError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Email already registered"


class AuthError(GalleryError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Incorrect email or password"


class NotFoundError(GalleryError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Gallery not found"


class TransientError(GalleryError):
    """Store or network failure; the client may retry by re-submitting."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "Service temporarily unavailable"
