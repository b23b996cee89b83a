"""Routing daemon runtime: configuration, events, subscriptions and the loop."""

from .config import DaemonConfig, load_config  # noqa: F401
from .events import RoutingAction, RoutingEvent, decode_event  # noqa: F401

__all__ = [
    "DaemonConfig",
    "RoutingAction",
    "RoutingEvent",
    "decode_event",
    "load_config",
]
