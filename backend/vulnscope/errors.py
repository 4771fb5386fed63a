# vulnscope/errors.py
"""
Engine error taxonomy.

Every error the engine surfaces to a caller is an EngineError subclass
carrying the HTTP status the routing layer should answer with:

    ValidationError       400  malformed target, empty/unknown check types
    NotFoundError         404  unknown scan / technology id
    InvalidStateError     409  e.g. cancelling a terminal scan
    ExternalServiceError  502  NVD failure or rate-limit rejection
    InternalError         500  storage failure or unexpected bug

ExternalServiceError is raised inside the CVE client and absorbed there:
a failed lookup degrades to the zero-result shape instead of reaching
the caller. StorageError is what storage backends raise; the engine
re-raises it as InternalError.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class EngineError(Exception):
    status_code = 500
    error = "Internal server error"

    def __init__(self, message: str = "", details: Optional[Dict[str, Any]] = None):
        super().__init__(message or self.error)
        self.message = message or self.error
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"error": self.error, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(EngineError):
    status_code = 400
    error = "Validation failed"


class NotFoundError(EngineError):
    status_code = 404
    error = "Not found"


class InvalidStateError(EngineError):
    status_code = 409
    error = "Invalid state"


class ExternalServiceError(EngineError):
    status_code = 502
    error = "Bad gateway"


class InternalError(EngineError):
    status_code = 500
    error = "Internal server error"


class StorageError(Exception):
    """Raised by storage backends when the underlying store fails."""
