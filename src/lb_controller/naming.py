"""Deterministic names for the routing objects of an application.

The names must stay bit-for-bit compatible with existing deployments, so the
templates are fixed and only the prefixes are configurable.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class NameBuilder:
    pool_prefix: str = "lb"
    route_prefix: str = "route"
    monitor_prefix: str = "monitor"

    def pool_name(self, app_name: str, namespace: str) -> str:
        return f"{self.pool_prefix}-{app_name}-{namespace}"

    def route_name(self, app_name: str, namespace: str) -> str:
        return f"{self.route_prefix}-{app_name}-{namespace}"

    def monitor_name(self, app_name: str, namespace: str) -> str:
        return f"{self.monitor_prefix}-{app_name}-{namespace}"

    @staticmethod
    def route_path(app_name: str) -> str:
        # Routed straight to the pool, not through the application's own proxy.
        return f"/{app_name}"


def member_key(address: str, port: int) -> str:
    """Render a pool member the way backends list it (``address:port``)."""

    return f"{address}:{int(port)}"


def split_member(member: str) -> tuple[str, int]:
    address, _, port = member.rpartition(":")
    if not address:
        raise ValueError(f"invalid pool member '{member}'")
    return address, int(port)
