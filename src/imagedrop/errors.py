"""
Error taxonomy for imagedrop.

Every failure that crosses a component boundary is one of these types.
Each carries the HTTP status code the API surface renders it with.
"""

from typing import Any, Dict, Optional


class ImageDropError(Exception):
    """Base class for all imagedrop errors."""

    status_code: int = 500

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_payload(self) -> Dict[str, Any]:
        """Build the JSON error body for this error."""
        payload: Dict[str, Any] = {"error": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ConfigurationError(ImageDropError):
    """Missing or invalid required settings. Fatal at startup."""


class DatabaseError(ImageDropError):
    """Any failure reported by the relational store."""


class FileSystemError(ImageDropError):
    """Directory setup or file I/O failure."""


class ValidationError(ImageDropError):
    """Caller supplied input that fails a precondition."""

    status_code = 400


class ResourceNotFoundError(ImageDropError):
    """Referenced record does not exist."""

    status_code = 404
