"""Configuration data structures for the controller and its backend models.

These dataclasses are filled in by the daemon's YAML or oslo.config loaders
and consumed by :mod:`lb_controller.models.registry` when the active backend
model is built at process start.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

BACKEND_TYPES = ("f5", "lbaas", "memory")


@dataclass(frozen=True)
class F5Settings:
    """Connection settings for an F5 BIG-IP appliance."""

    host: str = "127.0.0.1"
    username: str = "admin"
    password: str = "passwd"
    partition: str = "Common"
    verify_tls: bool = True
    timeout: float = 30.0


@dataclass(frozen=True)
class LBaaSSettings:
    """Connection settings for the cloud LBaaS REST service.

    Attributes
    ----------
    host:
        Host serving the LBaaS API.
    keystone_host:
        Host serving the keystone v2 token API used for authentication.
    tenant:
        Tenant the load-balancer objects are scoped to.
    """

    host: str
    keystone_host: str
    username: str
    password: str
    tenant: str
    verify_tls: bool = True
    timeout: float = 30.0


@dataclass(frozen=True)
class MemorySettings:
    asynchronous: bool = False
    polls_to_complete: Optional[int] = 1


@dataclass(frozen=True)
class BackendConfig:
    type: str
    virtual_endpoint: Optional[str] = None
    job_poll_interval: float = 1.0
    job_timeout: float = 60.0
    f5: Optional[F5Settings] = None
    lbaas: Optional[LBaaSSettings] = None
    memory: MemorySettings = field(default_factory=MemorySettings)

    def __post_init__(self) -> None:
        if self.type not in BACKEND_TYPES:
            raise ValueError(
                f"Unsupported backend type '{self.type}' "
                f"(expected one of {', '.join(BACKEND_TYPES)})"
            )
        if self.type == "lbaas" and self.lbaas is None:
            raise ValueError("backend type 'lbaas' requires an 'lbaas' section")


@dataclass(frozen=True)
class MonitorConfig:
    """Health-check contract created for every application pool."""

    path: str = "/"
    up_code: str = "200"
    type: str = "http"
    interval: int = 5
    timeout: int = 16
