"""
tidewatch.errors — Domain Error Taxonomy
=========================================

Every failure the core reports to its caller is one of these.  The caller
(HTTP layer, CLI, worker) maps them to its own transport.

- ``InvalidContent``        — structural / length / enum constraint failed
- ``NotFound``              — referenced report, user or achievement absent
- ``Forbidden``             — authorization predicate failed
- ``InvalidTransition``     — report state machine rule violated
- ``ConflictingUpdate``     — concurrent write lost a race; retry the operation
- ``DependencyUnavailable`` — storage collaborator failed
"""

from __future__ import annotations


class TidewatchError(Exception):
    """Base class for all domain errors."""


class InvalidContent(TidewatchError):
    """Raised when submitted content violates a field constraint.

    ``errors`` holds one ``{"field": ..., "message": ...}`` dict per problem.
    """

    def __init__(self, message: str, errors: list[dict[str, str]] | None = None) -> None:
        super().__init__(message)
        self.errors: list[dict[str, str]] = errors or []


class NotFound(TidewatchError):
    """Raised when a referenced entity does not exist."""


class Forbidden(TidewatchError):
    """Raised when the acting user lacks permission."""


class InvalidTransition(TidewatchError):
    """Raised when a report status change is not an allowed edge."""


class ConflictingUpdate(TidewatchError):
    """Raised when an optimistic version check or unique insert lost a race."""


class DependencyUnavailable(TidewatchError):
    """Raised when the storage collaborator cannot be reached."""
