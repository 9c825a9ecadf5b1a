from __future__ import annotations

from typing import Any


class RelayError(Exception):
    """Base error for failures that end an injection request."""

    status_code = 500
    error_type: str | None = None

    def __init__(self, message: str, **extra: Any) -> None:
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"success": False, "message": self.message}
        if self.error_type:
            body["error_type"] = self.error_type
        body.update(self.extra)
        return body


class InvalidRequestError(RelayError):
    """Raised when required request fields are missing."""

    status_code = 400


class InvalidIdentifierError(InvalidRequestError, ValueError):
    """Raised when a lookup key is empty."""


class ConfigurationError(RelayError):
    """Raised when the database backend is not configured."""

    error_type = "configuration_error"


class CredentialsNotFoundError(RelayError):
    """Raised when the credential or user configuration row is missing."""

    status_code = 404


class CliUnavailableError(RelayError):
    """Raised when the n8n CLI cannot be invoked."""

    error_type = "cli_unavailable"


class UnsupportedProviderError(RelayError, ValueError):
    """Raised for providers without an n8n credential type."""

    status_code = 400
    error_type = "unsupported_provider"


class StatusWriteError(RelayError):
    """Raised when the injection status cannot be written back."""

    error_type = "status_write_failed"


class CommandError(Exception):
    """Raised when a CLI command cannot complete."""


class CommandTimeoutError(CommandError):
    """Raised when a CLI command exceeds its timeout."""
