"""Backend-agnostic registry of pools, routes and monitors.

The controller keeps a cached view of the backend, seeded by one listing per
collection on first use.  Existence checks run against that cache and raise
before any backend call is made; the cache itself is only changed after the
backend confirmed a mutation (for asynchronous models: after every job of
the mutation succeeded).  When a mutation fails with a backend error its
outcome is unknown, so the collections it touched are dropped and re-listed
from the backend on next access.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import FrozenSet, Iterable, Iterator, Optional, Set

from .cache import CachedCollection
from .config import BackendConfig
from .errors import AlreadyExists, BackendError, InvalidReference, NotFound
from .jobs import JobWaiter
from .models.base import LoadBalancerModel
from .naming import member_key

LOG = logging.getLogger(__name__)


@dataclass
class Route:
    """A path-based routing rule.

    ``path`` is only known for routes created through this controller;
    ``pool`` is also filled in from the backend listing where it reports one.
    """

    name: str
    pool: Optional[str] = None
    path: Optional[str] = None


@dataclass
class Monitor:
    name: str
    path: Optional[str] = None
    up_code: Optional[str] = None
    type: Optional[str] = None
    interval: Optional[int] = None
    timeout: Optional[int] = None


class Pool:
    """A named set of ``address:port`` members."""

    def __init__(
        self,
        controller: "LoadBalancerController",
        name: str,
        monitor: Optional[str] = None,
        members: Optional[Iterable[str]] = None,
    ) -> None:
        self._controller = controller
        self.name = name
        self.monitor = monitor
        self._members: Optional[Set[str]] = set(members) if members is not None else None

    def __repr__(self) -> str:
        return f"Pool({self.name!r})"

    def _load(self) -> Set[str]:
        if self._members is None:
            LOG.debug("Requesting members of pool %s", self.name)
            self._members = {
                member_key(address, port)
                for address, port in self._controller.model.get_pool_members(self.name)
            }
        return self._members

    @property
    def members(self) -> FrozenSet[str]:
        return frozenset(self._load())

    def invalidate(self) -> None:
        self._members = None

    def add_member(self, address: str, port: int) -> None:
        self._controller._require_pool(self.name)
        member = member_key(address, port)
        if member in self._load():
            raise AlreadyExists("pool member", f"{member} in {self.name}")

        with self._controller._outcome_unknown(pool=self):
            self._controller._apply(
                self._controller.model.add_pool_member(self.name, address, int(port))
            )
        self._load().add(member)
        LOG.info("Added member %s to pool %s", member, self.name)

    def delete_member(self, address: str, port: int) -> None:
        self._controller._require_pool(self.name)
        member = member_key(address, port)
        if member not in self._load():
            raise NotFound("pool member", f"{member} in {self.name}")

        with self._controller._outcome_unknown(pool=self):
            self._controller._apply(
                self._controller.model.delete_pool_member(self.name, address, int(port))
            )
        self._load().discard(member)
        LOG.info("Deleted member %s from pool %s", member, self.name)


class LoadBalancerController:
    """Dispatch routing operations to the active backend model."""

    def __init__(
        self,
        model: LoadBalancerModel,
        *,
        virtual_endpoint: Optional[str] = None,
        job_waiter: Optional[JobWaiter] = None,
    ) -> None:
        self.model = model
        self.virtual_endpoint = virtual_endpoint
        self._jobs = job_waiter or JobWaiter(model)

        self._pools: CachedCollection[Pool] = CachedCollection(
            "pools", lambda: ((name, Pool(self, name)) for name in model.list_pools())
        )
        self._routes: CachedCollection[Route] = CachedCollection(
            "routing rules",
            lambda: (
                (name, Route(name, pool=pool))
                for name, pool in model.list_route_pools().items()
            ),
        )
        self._active_routes: CachedCollection[Optional[str]] = CachedCollection(
            "active routing rules",
            lambda: ((name, virtual_endpoint) for name in model.list_active_routes()),
        )
        self._monitors: CachedCollection[Monitor] = CachedCollection(
            "monitors",
            lambda: ((name, Monitor(name)) for name in model.list_monitors()),
        )

    @classmethod
    def from_config(
        cls, model: LoadBalancerModel, config: BackendConfig
    ) -> "LoadBalancerController":
        waiter = JobWaiter(
            model, interval=config.job_poll_interval, timeout=config.job_timeout
        )
        return cls(model, virtual_endpoint=config.virtual_endpoint, job_waiter=waiter)

    # ------------------------------------------------------------------
    # Cache access
    # ------------------------------------------------------------------
    @property
    def pools(self) -> CachedCollection[Pool]:
        return self._pools

    @property
    def routes(self) -> CachedCollection[Route]:
        return self._routes

    @property
    def active_routes(self) -> CachedCollection[Optional[str]]:
        return self._active_routes

    @property
    def monitors(self) -> CachedCollection[Monitor]:
        return self._monitors

    def connect(self) -> None:
        self.model.authenticate()

    def reload(self) -> None:
        """Forget every cached collection; the next access re-lists the backend."""

        for collection in (self._pools, self._routes, self._active_routes, self._monitors):
            collection.invalidate()
        LOG.info("Discarded cached load-balancer state")

    def _apply(self, job_ids: Iterable[str]) -> None:
        self._jobs.wait(job_ids)

    @contextmanager
    def _outcome_unknown(
        self, *collections: CachedCollection, pool: Optional[Pool] = None
    ) -> Iterator[None]:
        try:
            yield
        except BackendError as exc:
            for collection in collections:
                collection.invalidate()
            if pool is not None:
                pool.invalidate()
            LOG.warning("Backend state unknown after %s; cached view discarded", exc)
            raise

    def _require_pool(self, name: str) -> Pool:
        pool = self._pools.get(name)
        if pool is None:
            raise InvalidReference(f"pool {name} does not exist")
        return pool

    def pool(self, name: str) -> Pool:
        return self._require_pool(name)

    # ------------------------------------------------------------------
    # Pools
    # ------------------------------------------------------------------
    def create_pool(self, name: str, monitor: Optional[str] = None) -> Pool:
        if name in self._pools:
            raise AlreadyExists("pool", name)
        if monitor is not None and monitor not in self._monitors:
            raise InvalidReference(f"monitor {monitor} does not exist")

        with self._outcome_unknown(self._pools):
            self._apply(self.model.create_pool(name, monitor))
        pool = Pool(self, name, monitor=monitor, members=())
        self._pools.add(name, pool)
        LOG.info("Created pool %s", name)
        return pool

    def delete_pool(self, name: str) -> None:
        if name not in self._pools:
            raise NotFound("pool", name)
        referencing = [
            route for route in self._routes if self._routes[route].pool == name
        ]
        if referencing:
            raise InvalidReference(
                f"pool {name} is still referenced by route(s) {', '.join(referencing)}"
            )

        with self._outcome_unknown(self._pools):
            self._apply(self.model.delete_pool(name))
        self._pools.discard(name)
        LOG.info("Deleted pool %s", name)

    # ------------------------------------------------------------------
    # Routes
    # ------------------------------------------------------------------
    def create_route(self, pool: str, route: str, path: str) -> Route:
        if route in self._routes:
            raise AlreadyExists("route", route)
        self._require_pool(pool)

        with self._outcome_unknown(self._routes):
            self._apply(self.model.create_route(pool, route, path))
        entry = Route(route, pool=pool, path=path)
        self._routes.add(route, entry)
        LOG.info("Created route %s (%s -> %s)", route, path, pool)

        self.attach_route(route)
        return entry

    def attach_route(self, route: str) -> None:
        """Make ``route`` active, attaching it to the virtual endpoint if one is set."""

        if route not in self._routes:
            raise NotFound("route", route)
        if route in self._active_routes:
            raise AlreadyExists("active route", route)

        if self.virtual_endpoint:
            with self._outcome_unknown(self._active_routes):
                self._apply(self.model.attach_route(route, self.virtual_endpoint))
            LOG.info("Attached route %s to %s", route, self.virtual_endpoint)
        self._active_routes.add(route, self.virtual_endpoint)

    def delete_route(self, pool: str, route: str) -> None:
        entry = self._routes.get(route)
        if entry is None:
            raise NotFound("route", route)
        if entry.pool is not None and entry.pool != pool:
            raise InvalidReference(
                f"route {route} belongs to pool {entry.pool}, not {pool}"
            )

        if self.virtual_endpoint and route in self._active_routes:
            with self._outcome_unknown(self._active_routes):
                self._apply(self.model.detach_route(route, self.virtual_endpoint))
            LOG.info("Detached route %s from %s", route, self.virtual_endpoint)
        self._active_routes.discard(route)

        with self._outcome_unknown(self._routes):
            self._apply(self.model.delete_route(pool, route))
        self._routes.discard(route)
        LOG.info("Deleted route %s", route)

    # ------------------------------------------------------------------
    # Monitors
    # ------------------------------------------------------------------
    def create_monitor(
        self,
        name: str,
        path: str,
        up_code: str,
        type: str,
        interval: int,
        timeout: int,
    ) -> Monitor:
        if name in self._monitors:
            raise AlreadyExists("monitor", name)

        with self._outcome_unknown(self._monitors):
            self._apply(
                self.model.create_monitor(name, path, up_code, type, interval, timeout)
            )
        monitor = Monitor(name, path, up_code, type, interval, timeout)
        self._monitors.add(name, monitor)
        LOG.info("Created %s monitor %s on %s", type, name, path)
        return monitor

    def delete_monitor(self, name: str, pool: Optional[str] = None) -> None:
        """Delete monitor ``name``, first dissociating it from ``pool`` if given.

        The dissociation jobs are waited on before the delete is submitted.
        """

        if name not in self._monitors:
            raise NotFound("monitor", name)
        target = self._require_pool(pool) if pool is not None else None

        if target is not None:
            with self._outcome_unknown(self._pools):
                self._apply(self.model.dissociate_monitor(name, target.name))
            if target.monitor == name:
                target.monitor = None
            LOG.info("Removed monitor %s from pool %s", name, target.name)

        with self._outcome_unknown(self._monitors):
            self._apply(self.model.delete_monitor(name))
        self._monitors.discard(name)
        LOG.info("Deleted monitor %s", name)
