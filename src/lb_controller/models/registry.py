"""Backend model selection.

The active model is chosen once, at process start, from the configured
backend type.  Factories are registered explicitly; nothing is imported or
resolved by name at runtime.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, Optional

import httpx

from ..config import BackendConfig, F5Settings
from .base import LoadBalancerModel
from .f5 import F5Model
from .lbaas import LBaaSModel
from .memory import MemoryModel

LOG = logging.getLogger(__name__)

ModelFactory = Callable[[BackendConfig, Optional[httpx.BaseTransport]], LoadBalancerModel]


class ModelRegistry:
    """Map backend type names to model factories."""

    def __init__(self) -> None:
        self._factories: Dict[str, ModelFactory] = {}

    def register(self, name: str, factory: ModelFactory) -> None:
        if name in self._factories:
            raise ValueError(f"model '{name}' already registered")
        self._factories[name] = factory

    def unregister(self, name: str) -> None:
        self._factories.pop(name, None)

    def names(self) -> list[str]:
        return sorted(self._factories)

    def build(
        self,
        config: BackendConfig,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> LoadBalancerModel:
        try:
            factory = self._factories[config.type]
        except KeyError:
            raise ValueError(f"no model registered for backend '{config.type}'") from None
        model = factory(config, transport)
        LOG.info("Using %s load-balancer model", type(model).__name__)
        return model


def _build_f5(config: BackendConfig, transport) -> LoadBalancerModel:
    settings = config.f5 or F5Settings()
    return F5Model(
        settings.host,
        settings.username,
        settings.password,
        partition=settings.partition,
        virtual_server=config.virtual_endpoint,
        verify=settings.verify_tls,
        timeout=settings.timeout,
        transport=transport,
    )


def _build_lbaas(config: BackendConfig, transport) -> LoadBalancerModel:
    settings = config.lbaas
    return LBaaSModel(
        settings.host,
        settings.username,
        settings.password,
        keystone_host=settings.keystone_host,
        tenant=settings.tenant,
        virtual_endpoint=config.virtual_endpoint,
        verify=settings.verify_tls,
        timeout=settings.timeout,
        transport=transport,
    )


def _build_memory(config: BackendConfig, transport) -> LoadBalancerModel:
    return MemoryModel(
        asynchronous=config.memory.asynchronous,
        polls_to_complete=config.memory.polls_to_complete,
    )


def default_registry() -> ModelRegistry:
    registry = ModelRegistry()
    registry.register("f5", _build_f5)
    registry.register("lbaas", _build_lbaas)
    registry.register("memory", _build_memory)
    return registry


def build_model(
    config: BackendConfig,
    transport: Optional[httpx.BaseTransport] = None,
) -> LoadBalancerModel:
    return default_registry().build(config, transport)
