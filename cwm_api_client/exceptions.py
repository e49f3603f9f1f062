"""
Custom exception types for the ConnectWise Manage API client.

These exceptions allow callers to distinguish between failures
occurring during authentication, programmer errors in the call
parameters, transient server trouble and application errors returned
by the API itself.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class ErrorEnvelope:
    """Decoded body of a failed API response.

    ConnectWise answers errors with a JSON document of the form
    ``{"code": ..., "message": ..., "errors": [{"field": ..., "message": ...}]}``.
    When the body is not JSON, ``raw`` holds the response text and
    ``code``/``message`` stay ``None``.
    """

    http_status: Optional[int]
    code: Optional[str] = None
    message: Optional[str] = None
    field_errors: List[str] = field(default_factory=list)
    raw: Optional[str] = None

    def describe(self) -> str:
        parts = []
        if self.http_status is not None:
            parts.append(str(self.http_status))
        if self.code:
            parts.append(self.code)
        if self.message:
            parts.append(self.message)
        elif self.raw:
            parts.append(self.raw)
        text = ": ".join(parts) if parts else "unknown error"
        if self.field_errors:
            text += " (" + "; ".join(self.field_errors) + ")"
        return text


class ConnectWiseError(Exception):
    """Base exception for all ConnectWise client errors."""


class NotConnectedError(ConnectWiseError):
    """Raised when a request is attempted without an active session."""


class SessionExpiredError(NotConnectedError):
    """Raised when the stored session has passed its expiration time."""


class AuthError(ConnectWiseError):
    """Raised when credentials are rejected or the validation probe fails."""


class StateError(ConnectWiseError):
    """Raised when the session state could not be changed as requested."""


class UsageError(ConnectWiseError, ValueError):
    """Raised for invalid caller parameters, before any request is sent."""


class UnsupportedPaginationError(ConnectWiseError):
    """Raised when forward-only pagination is requested on an endpoint
    that does not return a ``Link`` header."""

    def __init__(self, call_site: str) -> None:
        super().__init__(
            f"{call_site} does not support forward-only pagination; "
            "request individual pages instead of all pages"
        )
        self.call_site = call_site


class ApiError(ConnectWiseError):
    """Raised when an HTTP request to the ConnectWise API returns an error status."""

    def __init__(self, message: str, envelope: Optional[ErrorEnvelope] = None) -> None:
        super().__init__(message)
        self.envelope = envelope or ErrorEnvelope(http_status=None)

    @property
    def http_status(self) -> Optional[int]:
        return self.envelope.http_status

    @property
    def code(self) -> Optional[str]:
        return self.envelope.code

    @property
    def field_errors(self) -> List[str]:
        return self.envelope.field_errors


class UnauthorizedError(ApiError):
    """Raised when the API answers with the ``Unauthorized`` error code."""


class TransportError(ApiError):
    """Raised when the request never produced an HTTP response."""


class MaxRetriesExceededError(ApiError):
    """Raised when a transient server error persists past the retry budget."""

    def __init__(
        self,
        message: str,
        last_status: int,
        attempts: int,
        envelope: Optional[ErrorEnvelope] = None,
    ) -> None:
        super().__init__(message, envelope or ErrorEnvelope(http_status=last_status))
        self.last_status = last_status
        self.attempts = attempts
