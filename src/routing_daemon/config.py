"""YAML configuration loader for the routing daemon."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from lb_controller.config import (
    BackendConfig,
    F5Settings,
    LBaaSSettings,
    MemorySettings,
    MonitorConfig,
)
from lb_controller.naming import NameBuilder

SUBSCRIPTION_TYPES = ("spool", "redis")


@dataclass
class SubscriptionConfig:
    type: str
    path: Optional[Path] = None
    interval: float = 1.0
    retry_interval: float = 5.0
    options: dict = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.type not in SUBSCRIPTION_TYPES:
            raise ValueError(f"unsupported subscription type '{self.type}'")
        if self.type == "spool" and self.path is None:
            raise ValueError("spool subscription requires a 'path'")
        if self.type == "redis" and not self.options.get("url"):
            raise ValueError("redis subscription requires a 'url' option")


@dataclass
class DaemonConfig:
    backend: BackendConfig
    subscription: SubscriptionConfig
    names: NameBuilder = field(default_factory=NameBuilder)
    create_routes: bool = True
    monitor: Optional[MonitorConfig] = None


def _section(data: dict, name: str) -> dict:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ValueError(f"'{name}' section must be a mapping")
    return section


def _parse_f5(section: dict) -> F5Settings:
    defaults = F5Settings()
    return F5Settings(
        host=str(section.get("host", defaults.host)),
        username=str(section.get("username", defaults.username)),
        password=str(section.get("password", defaults.password)),
        partition=str(section.get("partition", defaults.partition)),
        verify_tls=bool(section.get("verify_tls", defaults.verify_tls)),
        timeout=float(section.get("timeout", defaults.timeout)),
    )


def _parse_lbaas(section: dict) -> LBaaSSettings:
    try:
        return LBaaSSettings(
            host=str(section["host"]),
            keystone_host=str(section["keystone_host"]),
            username=str(section["username"]),
            password=str(section["password"]),
            tenant=str(section["tenant"]),
            verify_tls=bool(section.get("verify_tls", True)),
            timeout=float(section.get("timeout", 30.0)),
        )
    except KeyError as exc:
        raise ValueError(f"lbaas section missing {exc.args[0]!r}") from None


def _optional_int(value) -> Optional[int]:
    return None if value is None else int(value)


def _parse_backend(section: dict) -> BackendConfig:
    backend_type = section.get("type")
    if backend_type is None:
        raise ValueError("backend section missing 'type'")

    lbaas = _section(section, "lbaas")
    memory = _section(section, "memory")
    endpoint = section.get("virtual_endpoint")
    return BackendConfig(
        type=str(backend_type),
        virtual_endpoint=str(endpoint) if endpoint else None,
        job_poll_interval=float(section.get("job_poll_interval", 1.0)),
        job_timeout=float(section.get("job_timeout", 60.0)),
        f5=_parse_f5(_section(section, "f5")),
        lbaas=_parse_lbaas(lbaas) if lbaas else None,
        memory=MemorySettings(
            asynchronous=bool(memory.get("asynchronous", False)),
            polls_to_complete=_optional_int(memory.get("polls_to_complete", 1)),
        ),
    )


def _parse_monitor(section: dict) -> MonitorConfig:
    defaults = MonitorConfig()
    return MonitorConfig(
        path=str(section.get("path", defaults.path)),
        up_code=str(section.get("up_code", defaults.up_code)),
        type=str(section.get("type", defaults.type)),
        interval=int(section.get("interval", defaults.interval)),
        timeout=int(section.get("timeout", defaults.timeout)),
    )


def _parse_subscription(section: dict) -> SubscriptionConfig:
    options = section.get("options", {})
    if not isinstance(options, dict):
        raise ValueError("subscription 'options' must be a mapping if provided")
    path = section.get("path")
    return SubscriptionConfig(
        type=str(section.get("type", "spool")),
        path=Path(path) if path else None,
        interval=float(section.get("interval", 1.0)),
        retry_interval=float(section.get("retry_interval", 5.0)),
        options=options,
    )


def load_config(path: Path) -> DaemonConfig:
    data = yaml.safe_load(Path(path).read_text())
    if not isinstance(data, dict):
        raise ValueError("Daemon configuration must be a mapping")

    if data.get("backend") is None:
        raise ValueError("Configuration missing 'backend' section")
    backend = _parse_backend(_section(data, "backend"))

    if data.get("subscription") is None:
        raise ValueError("Configuration missing 'subscription' section")
    subscription = _parse_subscription(_section(data, "subscription"))

    naming = _section(data, "naming")
    defaults = NameBuilder()
    names = NameBuilder(
        pool_prefix=str(naming.get("pool_prefix", defaults.pool_prefix)),
        route_prefix=str(naming.get("route_prefix", defaults.route_prefix)),
        monitor_prefix=str(naming.get("monitor_prefix", defaults.monitor_prefix)),
    )

    monitor = data.get("monitor")
    return DaemonConfig(
        backend=backend,
        subscription=subscription,
        names=names,
        create_routes=bool(naming.get("create_routes", True)),
        monitor=_parse_monitor(_section(data, "monitor")) if monitor else None,
    )
