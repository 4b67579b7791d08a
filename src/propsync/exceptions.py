"""Custom exception hierarchy for propsync."""

from __future__ import annotations

from collections.abc import Mapping


class PropSyncError(Exception):
    """Base exception for all propsync errors."""


class ConfigError(PropSyncError):
    """Invalid or missing configuration."""


class TransportError(PropSyncError):
    """Network-level failure (connection, timeout, unparsable body)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class ApiError(PropSyncError):
    """Server rejected the request.

    ``str(error)`` is the server's ``message`` field, unmodified, so it can
    be shown to the user as-is.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
        code: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        self.code = code
        super().__init__(message)

    @property
    def is_client_error(self) -> bool:
        """Whether the server blamed the request (4xx)."""
        return self.status_code is not None and 400 <= self.status_code < 500


class AuthenticationError(ApiError):
    """Session cookie missing or rejected (HTTP 401)."""


class FormValidationError(PropSyncError):
    """Client-side form validation failed; nothing was sent.

    ``field_errors`` maps each offending field (by its wire name) to the
    messages produced by the form schema.
    """

    def __init__(self, message: str, *, field_errors: Mapping[str, list[str]] | None = None) -> None:
        self.field_errors: dict[str, list[str]] = {k: list(v) for k, v in (field_errors or {}).items()}
        super().__init__(message)
