"""Translate routing events into controller calls."""

from __future__ import annotations

import logging
from typing import Optional

from lb_controller.config import MonitorConfig
from lb_controller.controller import LoadBalancerController
from lb_controller.naming import NameBuilder, member_key

from .events import RoutingAction, RoutingEvent

LOG = logging.getLogger(__name__)


class RoutingEventHandler:
    """Apply one routing event as the minimal sequence of controller calls.

    Steps whose outcome the controller's cache already reflects are skipped,
    so an event redelivered after a partial failure resumes where the failed
    attempt stopped.  Every error raised by the controller propagates to the
    caller, which must then leave the event unacknowledged.
    """

    def __init__(
        self,
        controller: LoadBalancerController,
        names: Optional[NameBuilder] = None,
        *,
        create_routes: bool = True,
        monitor: Optional[MonitorConfig] = None,
    ) -> None:
        self._controller = controller
        self._names = names or NameBuilder()
        self._create_routes = create_routes
        self._monitor = monitor
        self._dispatch = {
            RoutingAction.CREATE_APPLICATION: self._create_application,
            RoutingAction.DELETE_APPLICATION: self._delete_application,
            RoutingAction.ADD_GEAR: self._add_gear,
            RoutingAction.REMOVE_GEAR: self._remove_gear,
        }

    def handle(self, event: RoutingEvent) -> None:
        if event.targets_local_proxy:
            LOG.info("Ignoring %s: endpoint is the application's local proxy", event.describe())
            return
        LOG.debug("Handling routing event %s", event)
        self._dispatch[event.action](event)

    # ------------------------------------------------------------------
    # Applications
    # ------------------------------------------------------------------
    def _create_application(self, event: RoutingEvent) -> None:
        controller = self._controller
        pool_name = self._names.pool_name(event.app_name, event.namespace)

        monitor_name = None
        if self._monitor is not None:
            monitor_name = self._names.monitor_name(event.app_name, event.namespace)
            if monitor_name not in controller.monitors:
                cfg = self._monitor
                controller.create_monitor(
                    monitor_name, cfg.path, cfg.up_code, cfg.type, cfg.interval, cfg.timeout
                )

        if pool_name in controller.pools:
            LOG.info("Pool %s already present", pool_name)
        else:
            controller.create_pool(pool_name, monitor_name)

        if self._create_routes:
            route_name = self._names.route_name(event.app_name, event.namespace)
            if route_name not in controller.routes:
                controller.create_route(
                    pool_name, route_name, self._names.route_path(event.app_name)
                )
            elif controller.virtual_endpoint and route_name not in controller.active_routes:
                LOG.info("Route %s present but not attached", route_name)
                controller.attach_route(route_name)
            else:
                LOG.info("Route %s already present", route_name)

    def _delete_application(self, event: RoutingEvent) -> None:
        controller = self._controller
        pool_name = self._names.pool_name(event.app_name, event.namespace)

        if self._create_routes:
            route_name = self._names.route_name(event.app_name, event.namespace)
            if route_name in controller.routes:
                controller.delete_route(pool_name, route_name)

        if pool_name in controller.pools:
            controller.delete_pool(pool_name)
        else:
            LOG.info("Pool %s already absent", pool_name)

        if self._monitor is not None:
            monitor_name = self._names.monitor_name(event.app_name, event.namespace)
            if monitor_name in controller.monitors:
                controller.delete_monitor(monitor_name)

    # ------------------------------------------------------------------
    # Gears
    # ------------------------------------------------------------------
    def _add_gear(self, event: RoutingEvent) -> None:
        pool = self._controller.pool(self._names.pool_name(event.app_name, event.namespace))
        if member_key(event.address, event.port) in pool.members:
            LOG.info("Member %s:%s already in pool %s", event.address, event.port, pool.name)
            return
        pool.add_member(event.address, event.port)

    def _remove_gear(self, event: RoutingEvent) -> None:
        pool = self._controller.pool(self._names.pool_name(event.app_name, event.namespace))
        if member_key(event.address, event.port) not in pool.members:
            LOG.info("Member %s:%s already absent from pool %s", event.address, event.port, pool.name)
            return
        pool.delete_member(event.address, event.port)
