"""
app/errors.py

Exception hierarchy for the import pipeline.

Only configuration problems and store/collaborator failures outside a run
are raised. Everything that goes wrong *during* a run is reported through
``ImportResult`` instead.
"""

from __future__ import annotations


class ImporterError(Exception):
    """Base exception for import pipeline failures."""


class ImportConfigurationError(ImporterError):
    """Raised when a configuration lacks a field required before any I/O."""

    def __init__(self, message: str, *, field_name: str | None = None) -> None:
        super().__init__(message)
        self.field_name = field_name


class GraphSyncError(ImporterError):
    """Raised when the downstream data endpoint rejects a sync payload."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ConfigurationNotFoundError(ImporterError):
    """Raised when a referenced import configuration does not exist."""


class ConcurrentUpdateError(ImporterError):
    """Raised when a configuration was modified by another writer mid-run."""
