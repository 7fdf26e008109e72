"""Shared constants for patchrelease."""

from patchrelease.errors import ErrorKind

# Process exit codes
EXIT_OK = 0
EXIT_EXTERNAL_FAILURE = 1   # git, build, deploy or file I/O failed
EXIT_INTEGRITY = 2          # bad arguments: unknown/duplicate/still-needed patch, unknown branch
EXIT_INVALID_STATE = 3      # state file or config is malformed

EXIT_CODE_FOR = {
    ErrorKind.NOT_FOUND: EXIT_INTEGRITY,
    ErrorKind.ALREADY_EXISTS: EXIT_INTEGRITY,
    ErrorKind.STILL_REFERENCED: EXIT_INTEGRITY,
    ErrorKind.EXTERNAL_OPERATION_FAILED: EXIT_EXTERNAL_FAILURE,
    ErrorKind.INVALID_STATE: EXIT_INVALID_STATE,
}

# Release branch pipelines run at once by `pr checkouts`
DEFAULT_CONCURRENCY = 5
