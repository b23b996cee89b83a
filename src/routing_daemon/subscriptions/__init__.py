"""Subscriptions delivering routing-update events to the daemon."""

from __future__ import annotations

from .base import Delivery, Subscription  # noqa: F401
from .redis_stream import RedisStreamSubscription  # noqa: F401
from .spool import SpoolSubscription  # noqa: F401

__all__ = [
    "Delivery",
    "RedisStreamSubscription",
    "SpoolSubscription",
    "Subscription",
    "create_subscription",
]


def create_subscription(config) -> Subscription:
    """Build the subscription described by a ``SubscriptionConfig``."""

    if config.type == "spool":
        return SpoolSubscription(config.path, retry_interval=config.retry_interval)
    if config.type == "redis":
        options = dict(config.options)
        url = options.pop("url")
        return RedisStreamSubscription.from_url(
            url,
            stream=options.get("stream", "routing"),
            group=options.get("group", "routing-daemon"),
            consumer=options.get("consumer"),
            retry_interval=config.retry_interval,
        )
    raise ValueError(f"unsupported subscription type '{config.type}'")
