"""Abstract interface every load-balancer backend model implements."""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Dict, List, Optional, Tuple

JobIds = List[str]


class JobStatus(Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self is not JobStatus.PENDING


class LoadBalancerModel(ABC):
    """Capability contract consumed by :class:`~lb_controller.controller.LoadBalancerController`.

    Every mutating method returns the identifiers of the backend jobs it
    submitted.  Synchronous models complete the mutation before returning and
    always return an empty list; asynchronous models set ``asynchronous`` and
    expect the caller to poll :meth:`get_job_status` until each job reaches a
    terminal state.

    All methods raise :class:`~lb_controller.errors.BackendUnavailable` on
    connectivity or authentication loss.
    """

    asynchronous = False

    def __init__(
        self,
        host: Optional[str] = None,
        user: Optional[str] = None,
        secret: Optional[str] = None,
    ) -> None:
        self._host = host
        self._user = user
        self._secret = secret

    @abstractmethod
    def authenticate(
        self,
        host: Optional[str] = None,
        user: Optional[str] = None,
        secret: Optional[str] = None,
    ) -> None:
        """Establish (or refresh) the backend session.

        Arguments left as ``None`` default to the credentials the model was
        constructed with.
        """

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------
    @abstractmethod
    def list_pools(self) -> List[str]:
        """Return the names of all pools."""

    @abstractmethod
    def list_routes(self) -> List[str]:
        """Return the names of all routes."""

    def list_route_pools(self) -> Dict[str, Optional[str]]:
        """Map every route name to the pool it selects, ``None`` when unknown."""

        return {name: None for name in self.list_routes()}

    @abstractmethod
    def list_active_routes(self) -> List[str]:
        """Return the names of routes attached to the virtual endpoint."""

    @abstractmethod
    def list_monitors(self) -> List[str]:
        """Return the names of all monitors."""

    @abstractmethod
    def get_pool_members(self, pool: str) -> List[Tuple[str, int]]:
        """Return ``(address, port)`` pairs for the members of ``pool``."""

    # ------------------------------------------------------------------
    # Pools
    # ------------------------------------------------------------------
    @abstractmethod
    def create_pool(self, pool: str, monitor: Optional[str] = None) -> JobIds:
        pass

    @abstractmethod
    def delete_pool(self, pool: str) -> JobIds:
        pass

    @abstractmethod
    def add_pool_member(self, pool: str, address: str, port: int) -> JobIds:
        pass

    @abstractmethod
    def delete_pool_member(self, pool: str, address: str, port: int) -> JobIds:
        pass

    # ------------------------------------------------------------------
    # Routes
    # ------------------------------------------------------------------
    @abstractmethod
    def create_route(self, pool: str, route: str, path: str) -> JobIds:
        pass

    @abstractmethod
    def delete_route(self, pool: str, route: str) -> JobIds:
        pass

    @abstractmethod
    def attach_route(self, route: str, endpoint: str) -> JobIds:
        """Attach ``route`` to the public-facing virtual ``endpoint``."""

    @abstractmethod
    def detach_route(self, route: str, endpoint: str) -> JobIds:
        pass

    # ------------------------------------------------------------------
    # Monitors
    # ------------------------------------------------------------------
    @abstractmethod
    def create_monitor(
        self,
        monitor: str,
        path: str,
        up_code: str,
        type: str,
        interval: int,
        timeout: int,
    ) -> JobIds:
        pass

    @abstractmethod
    def dissociate_monitor(self, monitor: str, pool: str) -> JobIds:
        """Stop ``pool`` from being health-checked by ``monitor``."""

    @abstractmethod
    def delete_monitor(self, monitor: str) -> JobIds:
        """Delete ``monitor``; it must no longer be associated with any pool."""

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------
    def get_job_status(self, job_id: str) -> JobStatus:
        raise NotImplementedError(
            f"{type(self).__name__} does not issue asynchronous jobs"
        )

    def close(self) -> None:
        """Release the session handle, if any."""
