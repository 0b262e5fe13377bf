"""Error taxonomy shared by the executors, services, and HTTP layer.

Every member maps to exactly one HTTP status and renders as
``{"success": false, "error": <message>}``.
"""

from __future__ import annotations

from typing import Any


class ExecutionError(Exception):
    """Base class for errors that surface to the caller."""

    status_code = 500

    def __init__(self, message: str, extra: dict[str, Any] | None = None) -> None:
        self.message = message
        self.extra = extra or {}
        super().__init__(message)

    def to_body(self) -> dict[str, Any]:
        return {"success": False, "error": self.message, **self.extra}


class AuthError(ExecutionError):
    """Missing or invalid bearer API key."""

    status_code = 401


class ValidationError(ExecutionError):
    """Malformed JSON, missing required field, or an invalid operation."""

    status_code = 400


class MissingVariablesError(ValidationError):
    """Placeholders remained after substitution."""

    def __init__(self, missing_variables: list[str], message: str | None = None) -> None:
        self.missing_variables = missing_variables
        placeholders = ", ".join(f"{{{{{name}}}}}" for name in missing_variables)
        super().__init__(
            message or f"Missing variables: {placeholders}",
            extra={"missingVariables": missing_variables},
        )


class NotFoundError(ExecutionError):
    status_code = 404


class AuthorizationError(ExecutionError):
    """Private-access or cross-user denial."""

    status_code = 403


class PasswordError(ExecutionError):
    """Missing or incorrect prompt password."""

    status_code = 401


class ProviderError(ExecutionError):
    """Downstream AI vendor failure (non-2xx or malformed response)."""

    status_code = 500


class UnexpectedError(ExecutionError):
    status_code = 500


class StepError(ExecutionError):
    """A flow step failed; the remaining steps are not run."""

    status_code = 500
