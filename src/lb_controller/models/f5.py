"""F5 BIG-IP appliance model speaking iControl REST.

The appliance applies every change before answering, so every mutating call
returns an empty job list.  Routes are HTTP class profiles which select a pool
by path glob; a route is *active* when its profile is attached to the
configured virtual server.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

import httpx

from ..naming import member_key, split_member
from .base import JobIds
from .rest import RestModel

LOG = logging.getLogger(__name__)

LTM = "/mgmt/tm/ltm"
MONITOR_TYPES = ("http", "https")


class F5Model(RestModel):
    auth_header = "X-F5-Auth-Token"

    def __init__(
        self,
        host: str,
        user: str,
        secret: str,
        *,
        partition: str = "Common",
        virtual_server: Optional[str] = None,
        verify: bool = True,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._partition = partition
        self._virtual_server = virtual_server
        super().__init__(
            host, user, secret, verify=verify, timeout=timeout, transport=transport
        )

    def _base_url(self, host: str) -> str:
        return f"https://{host}"

    def _login(self, host: str, user: str, secret: str) -> str:
        body = self._post_credentials(
            "/mgmt/shared/authn/login",
            {"username": user, "password": secret, "loginProviderName": "tmos"},
        )
        return body["token"]["token"]

    def _ref(self, name: str) -> str:
        return f"~{self._partition}~{name}"

    def _full_path(self, name: str) -> str:
        return f"/{self._partition}/{name}"

    def _list(self, path: str) -> List[str]:
        items = self._request("GET", path).json().get("items", [])
        return [
            item["name"]
            for item in items
            if item.get("partition", self._partition) == self._partition
        ]

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------
    def list_pools(self) -> List[str]:
        return self._list(f"{LTM}/pool")

    def list_routes(self) -> List[str]:
        return self._list(f"{LTM}/profile/httpclass")

    def list_route_pools(self) -> Dict[str, Optional[str]]:
        items = self._request("GET", f"{LTM}/profile/httpclass").json().get("items", [])
        prefix = self._full_path("")
        routes: Dict[str, Optional[str]] = {}
        for item in items:
            if item.get("partition", self._partition) != self._partition:
                continue
            pool = item.get("pool") or None
            if pool and pool.startswith(prefix):
                pool = pool[len(prefix):]
            routes[item["name"]] = pool
        return routes

    def list_active_routes(self) -> List[str]:
        if not self._virtual_server:
            return []
        attached = self._list(f"{LTM}/virtual/{self._ref(self._virtual_server)}/profiles")
        # The virtual server also carries protocol profiles (tcp, http, ...).
        routes = set(self.list_routes())
        return [name for name in attached if name in routes]

    def list_monitors(self) -> List[str]:
        monitors: List[str] = []
        for monitor_type in MONITOR_TYPES:
            monitors.extend(self._list(f"{LTM}/monitor/{monitor_type}"))
        return monitors

    def get_pool_members(self, pool: str) -> List[Tuple[str, int]]:
        names = self._list(f"{LTM}/pool/{self._ref(pool)}/members")
        return [split_member(name) for name in names]

    # ------------------------------------------------------------------
    # Pools
    # ------------------------------------------------------------------
    def create_pool(self, pool: str, monitor: Optional[str] = None) -> JobIds:
        body = {
            "name": pool,
            "partition": self._partition,
            "loadBalancingMode": "round-robin",
        }
        if monitor:
            body["monitor"] = self._full_path(monitor)
        self._request("POST", f"{LTM}/pool", json=body)
        LOG.info("Created F5 pool %s", pool)
        return []

    def delete_pool(self, pool: str) -> JobIds:
        self._request("DELETE", f"{LTM}/pool/{self._ref(pool)}")
        LOG.info("Deleted F5 pool %s", pool)
        return []

    def add_pool_member(self, pool: str, address: str, port: int) -> JobIds:
        self._request(
            "POST",
            f"{LTM}/pool/{self._ref(pool)}/members",
            json={
                "name": member_key(address, port),
                "partition": self._partition,
                "address": address,
            },
        )
        return []

    def delete_pool_member(self, pool: str, address: str, port: int) -> JobIds:
        self._request(
            "DELETE",
            f"{LTM}/pool/{self._ref(pool)}/members/{self._ref(member_key(address, port))}",
        )
        return []

    # ------------------------------------------------------------------
    # Routes
    # ------------------------------------------------------------------
    def create_route(self, pool: str, route: str, path: str) -> JobIds:
        self._request(
            "POST",
            f"{LTM}/profile/httpclass",
            json={
                "name": route,
                "partition": self._partition,
                "pool": self._full_path(pool),
                "paths": [f"glob:{path}*"],
            },
        )
        LOG.info("Created F5 httpclass profile %s (%s -> %s)", route, path, pool)
        return []

    def delete_route(self, pool: str, route: str) -> JobIds:
        self._request("DELETE", f"{LTM}/profile/httpclass/{self._ref(route)}")
        LOG.info("Deleted F5 httpclass profile %s", route)
        return []

    def attach_route(self, route: str, endpoint: str) -> JobIds:
        self._request(
            "POST",
            f"{LTM}/virtual/{self._ref(endpoint)}/profiles",
            json={"name": route, "partition": self._partition},
        )
        return []

    def detach_route(self, route: str, endpoint: str) -> JobIds:
        self._request(
            "DELETE",
            f"{LTM}/virtual/{self._ref(endpoint)}/profiles/{self._ref(route)}",
        )
        return []

    # ------------------------------------------------------------------
    # Monitors
    # ------------------------------------------------------------------
    def create_monitor(
        self,
        monitor: str,
        path: str,
        up_code: str,
        type: str,
        interval: int,
        timeout: int,
    ) -> JobIds:
        if type not in MONITOR_TYPES:
            raise ValueError(f"Unsupported F5 monitor type '{type}'")
        self._request(
            "POST",
            f"{LTM}/monitor/{type}",
            json={
                "name": monitor,
                "partition": self._partition,
                "send": f"GET {path} HTTP/1.0\\r\\n\\r\\n",
                "recv": str(up_code),
                "interval": int(interval),
                "timeout": int(timeout),
            },
        )
        LOG.info("Created F5 %s monitor %s", type, monitor)
        return []

    def dissociate_monitor(self, monitor: str, pool: str) -> JobIds:
        self._request("PATCH", f"{LTM}/pool/{self._ref(pool)}", json={"monitor": "none"})
        LOG.info("Removed monitor %s from F5 pool %s", monitor, pool)
        return []

    def delete_monitor(self, monitor: str) -> JobIds:
        monitor_type = next(
            (
                kind
                for kind in MONITOR_TYPES
                if monitor in self._list(f"{LTM}/monitor/{kind}")
            ),
            MONITOR_TYPES[0],
        )
        self._request("DELETE", f"{LTM}/monitor/{monitor_type}/{self._ref(monitor)}")
        LOG.info("Deleted F5 monitor %s", monitor)
        return []
