"""Backend models the controller can drive."""

from .base import JobStatus, LoadBalancerModel  # noqa: F401
from .f5 import F5Model  # noqa: F401
from .lbaas import LBaaSModel  # noqa: F401
from .memory import MemoryModel  # noqa: F401
from .registry import ModelRegistry, build_model  # noqa: F401

__all__ = [
    "F5Model",
    "JobStatus",
    "LBaaSModel",
    "LoadBalancerModel",
    "MemoryModel",
    "ModelRegistry",
    "build_model",
]
