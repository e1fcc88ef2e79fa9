"""
Transition Errors
=================
Nothing here is fatal. Every failure stays local to one transition attempt.
"""

from enum import Enum


class TransitionFailure(str, Enum):
    GATING_UNAVAILABLE = "GATING_UNAVAILABLE"                            # pre-check unreachable, fail open
    PREREQUISITES_UNMET = "PREREQUISITES_UNMET"                          # check returned violations
    PERSISTENCE_FAILED = "PERSISTENCE_FAILED"                            # field save rejected
    COMMIT_REJECTED_BY_PREREQUISITES = "COMMIT_REJECTED_BY_PREREQUISITES"  # 422 on commit
    COMMIT_REJECTED_OTHER = "COMMIT_REJECTED_OTHER"                      # any other commit failure
    UNEXPECTED = "UNEXPECTED"


class LifecycleGateError(Exception):
    """Base class for client-side lifecycle errors."""


class BackendUnavailableError(LifecycleGateError):
    """The backend could not be reached or answered with a server error."""


class BackendRequestError(LifecycleGateError):
    """The backend rejected a request (4xx)."""

    def __init__(self, status_code: int, detail: str):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"Backend error {status_code}: {detail}")


class InvalidTransitionError(LifecycleGateError, ValueError):
    """Requested target is not reachable from the current state."""


class TransitionInProgressError(LifecycleGateError):
    """Another transition attempt is still open for this entity."""
