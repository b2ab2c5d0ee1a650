"""
Error types raised by the release services.

Each carries the HTTP status the API layer answers with.
"""


class AppStoreError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AppStoreError):
    """Missing or malformed release fields."""
    status_code = 400


class NotFound(AppStoreError):
    status_code = 404


class StorageError(AppStoreError):
    """MongoDB unavailable or a write failed."""
    status_code = 503


class ObjectStoreError(AppStoreError):
    """Cloudinary upload or delete failed."""
    status_code = 502
