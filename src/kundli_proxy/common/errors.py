"""Error taxonomy shared by handlers and upstream clients.

Every error knows the HTTP status it maps to and how to render itself as the
JSON body returned to the caller.
"""
from __future__ import annotations
from typing import Any


class ProxyError(Exception):
    """Base class for errors surfaced to HTTP callers."""

    status_code: int = 500
    error: str = "Internal Server Error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_payload(self) -> dict[str, Any]:
        return {"error": self.error, "details": self.message}


class ValidationError(ProxyError):
    """Missing or malformed client input."""

    status_code = 400

    def to_payload(self) -> dict[str, Any]:
        return {"error": self.message}


class NotFoundError(ProxyError):
    """Upstream answered but had no match."""

    status_code = 404

    def to_payload(self) -> dict[str, Any]:
        return {"error": self.message}


class ExternalServiceError(ProxyError):
    """Upstream call failed, returned a non-success status or an unexpected shape."""

    status_code = 500


class ChartGenerationError(ExternalServiceError):
    error = "Failed to generate Kundli chart"

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        payload["success"] = False
        return payload
