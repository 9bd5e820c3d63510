from __future__ import annotations


class CertDashboardError(Exception):
    """Base class for errors surfaced to dashboard users."""


class ValidationError(CertDashboardError, ValueError):
    """An upload was rejected as a whole because one row or header is invalid."""

    def __init__(self, message: str, *, row: int | None = None, column: str | None = None) -> None:
        self.row = row
        self.column = column
        if row is not None:
            message = f"{message} (row {row})"
        super().__init__(message)


class AuthorizationDenied(CertDashboardError):
    """The signed-in principal's role does not permit the attempted action."""


class ExternalServiceError(CertDashboardError):
    """The document store or auth provider failed; the operation was abandoned."""


class ConfigurationError(CertDashboardError, ValueError):
    """The loaded configuration cannot support the requested command."""
