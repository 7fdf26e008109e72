"""Error types for maintenance operations.

Every failure a caller can branch on is a MaintenanceError with an explicit
ErrorKind, so callers never have to catch generic exceptions to tell a missing
patch apart from a failed git command.
"""

from enum import Enum


class ErrorKind(Enum):
    """Classification of maintenance failures."""

    # Integrity violations, raised before any mutation
    NOT_FOUND = "not_found"
    ALREADY_EXISTS = "already_exists"
    STILL_REFERENCED = "still_referenced"

    # Git, build, deploy or store I/O failed
    EXTERNAL_OPERATION_FAILED = "external_operation_failed"

    # Persisted state does not have the expected shape
    INVALID_STATE = "invalid_state"


class MaintenanceError(Exception):
    """Raised when a maintenance operation cannot proceed."""

    def __init__(self, kind: ErrorKind, message: str, repo: str | None = None, branch: str | None = None):
        self.kind = kind
        self.repo = repo
        self.branch = branch
        super().__init__(message)


def not_found(message: str, repo: str | None = None, branch: str | None = None) -> MaintenanceError:
    return MaintenanceError(ErrorKind.NOT_FOUND, message, repo=repo, branch=branch)


def external_failure(message: str, repo: str | None = None, branch: str | None = None) -> MaintenanceError:
    return MaintenanceError(ErrorKind.EXTERNAL_OPERATION_FAILED, message, repo=repo, branch=branch)
