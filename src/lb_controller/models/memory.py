"""In-memory backend model.

Keeps the whole load-balancer state in dictionaries, which makes it usable
for dry runs of the daemon and as the backend of the unit tests.  In
asynchronous mode every mutation is applied immediately but reported through
a job that only turns terminal after ``polls_to_complete`` status polls (or
never, when that is ``None``).
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple

from ..errors import BackendRequestError, BackendUnavailable
from ..naming import member_key, split_member
from .base import JobIds, JobStatus, LoadBalancerModel

LOG = logging.getLogger(__name__)


@dataclass
class _Job:
    polls: int = 0


@dataclass
class MemoryState:
    pools: Dict[str, Set[str]] = field(default_factory=dict)
    pool_monitors: Dict[str, Optional[str]] = field(default_factory=dict)
    routes: Dict[str, Tuple[str, str]] = field(default_factory=dict)
    active_routes: Dict[str, str] = field(default_factory=dict)
    monitors: Dict[str, Dict[str, Any]] = field(default_factory=dict)


class MemoryModel(LoadBalancerModel):
    def __init__(
        self,
        host: Optional[str] = None,
        user: Optional[str] = None,
        secret: Optional[str] = None,
        *,
        asynchronous: bool = False,
        polls_to_complete: Optional[int] = 1,
        job_result: JobStatus = JobStatus.SUCCEEDED,
    ) -> None:
        super().__init__(host, user, secret)
        self.asynchronous = asynchronous
        self.polls_to_complete = polls_to_complete
        self.job_result = job_result
        self.available = True
        self.authenticated = False
        self.state = MemoryState()
        self.calls: List[Tuple[Any, ...]] = []
        self._jobs: Dict[str, _Job] = {}
        self._job_ids = itertools.count(1)

    def _call(self, name: str, *args: Any) -> None:
        if not self.available:
            raise BackendUnavailable(f"memory backend unavailable during {name}")
        self.calls.append((name, *args))

    def _done(self) -> JobIds:
        if not self.asynchronous:
            return []
        job_id = f"job-{next(self._job_ids)}"
        self._jobs[job_id] = _Job()
        return [job_id]

    def _pool(self, pool: str) -> Set[str]:
        try:
            return self.state.pools[pool]
        except KeyError:
            raise BackendRequestError(f"pool {pool} does not exist", 404) from None

    @staticmethod
    def _conflict(kind: str, name: str) -> BackendRequestError:
        return BackendRequestError(f"{kind} {name} already exists", 409)

    def mutating_calls(self) -> List[Tuple[Any, ...]]:
        """Recorded calls that would change backend state."""

        readonly = ("authenticate", "get_job_status")
        return [
            call
            for call in self.calls
            if call[0] not in readonly
            and not call[0].startswith(("list_", "get_"))
        ]

    # ------------------------------------------------------------------
    # Session / listings
    # ------------------------------------------------------------------
    def authenticate(self, host=None, user=None, secret=None) -> None:
        self._call("authenticate", host or self._host)
        self.authenticated = True

    def list_pools(self) -> List[str]:
        self._call("list_pools")
        return list(self.state.pools)

    def list_routes(self) -> List[str]:
        self._call("list_routes")
        return list(self.state.routes)

    def list_route_pools(self) -> Dict[str, Optional[str]]:
        self._call("list_route_pools")
        return {route: pool for route, (pool, _path) in self.state.routes.items()}

    def list_active_routes(self) -> List[str]:
        self._call("list_active_routes")
        return list(self.state.active_routes)

    def list_monitors(self) -> List[str]:
        self._call("list_monitors")
        return list(self.state.monitors)

    def get_pool_members(self, pool: str) -> List[Tuple[str, int]]:
        self._call("get_pool_members", pool)
        return [split_member(member) for member in sorted(self._pool(pool))]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    def create_pool(self, pool: str, monitor: Optional[str] = None) -> JobIds:
        self._call("create_pool", pool, monitor)
        if pool in self.state.pools:
            raise self._conflict("pool", pool)
        self.state.pools[pool] = set()
        self.state.pool_monitors[pool] = monitor
        return self._done()

    def delete_pool(self, pool: str) -> JobIds:
        self._call("delete_pool", pool)
        self._pool(pool)
        del self.state.pools[pool]
        self.state.pool_monitors.pop(pool, None)
        return self._done()

    def add_pool_member(self, pool: str, address: str, port: int) -> JobIds:
        self._call("add_pool_member", pool, address, port)
        members = self._pool(pool)
        key = member_key(address, port)
        if key in members:
            raise self._conflict("member", key)
        members.add(key)
        return self._done()

    def delete_pool_member(self, pool: str, address: str, port: int) -> JobIds:
        self._call("delete_pool_member", pool, address, port)
        members = self._pool(pool)
        key = member_key(address, port)
        if key not in members:
            raise BackendRequestError(f"member {key} does not exist", 404)
        members.discard(key)
        return self._done()

    def create_route(self, pool: str, route: str, path: str) -> JobIds:
        self._call("create_route", pool, route, path)
        self._pool(pool)
        if route in self.state.routes:
            raise self._conflict("route", route)
        self.state.routes[route] = (pool, path)
        return self._done()

    def delete_route(self, pool: str, route: str) -> JobIds:
        self._call("delete_route", pool, route)
        if route not in self.state.routes:
            raise BackendRequestError(f"route {route} does not exist", 404)
        del self.state.routes[route]
        return self._done()

    def attach_route(self, route: str, endpoint: str) -> JobIds:
        self._call("attach_route", route, endpoint)
        self.state.active_routes[route] = endpoint
        return self._done()

    def detach_route(self, route: str, endpoint: str) -> JobIds:
        self._call("detach_route", route, endpoint)
        self.state.active_routes.pop(route, None)
        return self._done()

    def create_monitor(self, monitor, path, up_code, type, interval, timeout) -> JobIds:
        self._call("create_monitor", monitor, path, up_code, type, interval, timeout)
        if monitor in self.state.monitors:
            raise self._conflict("monitor", monitor)
        self.state.monitors[monitor] = {
            "path": path,
            "up_code": up_code,
            "type": type,
            "interval": interval,
            "timeout": timeout,
        }
        return self._done()

    def dissociate_monitor(self, monitor: str, pool: str) -> JobIds:
        self._call("dissociate_monitor", monitor, pool)
        self._pool(pool)
        if self.state.pool_monitors.get(pool) == monitor:
            self.state.pool_monitors[pool] = None
        return self._done()

    def delete_monitor(self, monitor: str) -> JobIds:
        self._call("delete_monitor", monitor)
        if monitor not in self.state.monitors:
            raise BackendRequestError(f"monitor {monitor} does not exist", 404)
        if monitor in self.state.pool_monitors.values():
            raise BackendRequestError(f"monitor {monitor} is still in use", 409)
        del self.state.monitors[monitor]
        return self._done()

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------
    def get_job_status(self, job_id: str) -> JobStatus:
        self._call("get_job_status", job_id)
        try:
            job = self._jobs[job_id]
        except KeyError:
            raise BackendRequestError(f"job {job_id} does not exist", 404) from None
        job.polls += 1
        if self.polls_to_complete is None or job.polls < self.polls_to_complete:
            return JobStatus.PENDING
        return self.job_result
