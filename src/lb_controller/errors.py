"""Error taxonomy shared by the controller, the backend models and the daemon.

Logical errors are raised by the controller before any backend call is made,
so no partial state results from them.  Backend errors are raised while (or
after) the remote state is being mutated and leave the backend in a state the
caller has to treat as unknown.
"""

from __future__ import annotations

from typing import Optional


class LBControllerError(Exception):
    """Base class for every error surfaced to the event consumer."""

    retryable = False


class LogicalError(LBControllerError):
    """Caller/ordering mistake or stale cache; never retried."""


class AlreadyExists(LogicalError):
    def __init__(self, kind: str, name: str) -> None:
        super().__init__(f"{kind} already exists: {name}")
        self.kind = kind
        self.name = name


class NotFound(LogicalError):
    def __init__(self, kind: str, name: str) -> None:
        super().__init__(f"{kind} not found: {name}")
        self.kind = kind
        self.name = name


class InvalidReference(LogicalError):
    """An object refers to another object that is missing or mismatched."""


class BackendError(LBControllerError):
    """Failure reported by (or while talking to) the load-balancer backend."""


class BackendUnavailable(BackendError):
    """Connectivity loss or authentication failure."""

    retryable = True


class BackendRequestError(BackendError):
    """The backend rejected a request."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class JobFailed(BackendError):
    def __init__(self, job_id: str) -> None:
        super().__init__(f"backend job {job_id} failed")
        self.job_id = job_id


class JobTimeout(BackendError):
    retryable = True

    def __init__(self, job_ids, timeout: float) -> None:
        pending = ", ".join(sorted(job_ids))
        super().__init__(f"backend jobs still pending after {timeout}s: {pending}")
        self.job_ids = set(job_ids)
        self.timeout = timeout
