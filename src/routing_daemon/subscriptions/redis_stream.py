"""Redis Streams subscription using a consumer group.

Entries read through the group stay in the consumer's pending list until
they are acknowledged with ``XACK``.  Pending entries are always delivered
before new ones, so an entry left unacknowledged is redelivered (after
``retry_interval`` seconds) ahead of anything published later.
"""

from __future__ import annotations

import logging
import socket
import time
from typing import Any, Callable, Dict, Optional

import redis

from .base import Delivery, Subscription

LOG = logging.getLogger(__name__)


def _text(value: Any) -> str:
    return value.decode("utf-8") if isinstance(value, bytes) else str(value)


class RedisStreamSubscription(Subscription):
    def __init__(
        self,
        client: "redis.Redis",
        *,
        stream: str = "routing",
        group: str = "routing-daemon",
        consumer: Optional[str] = None,
        field: str = "event",
        retry_interval: float = 5.0,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._stream = stream
        self._group = group
        self._consumer = consumer or socket.gethostname()
        self._field = field
        self._retry_interval = retry_interval
        self._sleep = sleep
        self._clock = clock
        self._retry_at: Dict[str, float] = {}
        self._group_ready = False

    @classmethod
    def from_url(cls, url: str, **kwargs: Any) -> "RedisStreamSubscription":
        return cls(redis.Redis.from_url(url), **kwargs)

    def _ensure_group(self) -> None:
        if self._group_ready:
            return
        try:
            self._client.xgroup_create(self._stream, self._group, id="0", mkstream=True)
            LOG.info("Created consumer group %s on stream %s", self._group, self._stream)
        except redis.exceptions.ResponseError as exc:
            if "BUSYGROUP" not in str(exc):
                raise
        self._group_ready = True

    def _read(self, start: str, block: Optional[int]):
        results = self._client.xreadgroup(
            self._group,
            self._consumer,
            {self._stream: start},
            count=1,
            block=block,
        )
        for _stream, entries in results or []:
            for entry_id, fields in entries:
                return _text(entry_id), fields
        return None

    def receive(self, timeout: float) -> Optional[Delivery]:
        self._ensure_group()

        pending = self._read("0", None)
        if pending is not None:
            entry_id, fields = pending
            wait = self._retry_at.get(entry_id, 0.0) - self._clock()
            if wait > 0:
                self._sleep(min(wait, timeout))
                return None
            LOG.debug("redelivering pending stream entry %s", entry_id)
            return self._delivery(entry_id, fields)

        block = int(timeout * 1000) or None
        entry = self._read(">", block)
        if entry is None:
            return None
        return self._delivery(*entry)

    def _delivery(self, entry_id: str, fields: Dict[Any, Any]) -> Delivery:
        decoded = {_text(key): value for key, value in (fields or {}).items()}
        body = decoded.get(self._field, b"")
        return Delivery(
            entry_id,
            _text(body),
            on_ack=lambda: self._ack(entry_id),
            on_nack=lambda: self._nack(entry_id),
        )

    def _ack(self, entry_id: str) -> None:
        self._client.xack(self._stream, self._group, entry_id)
        self._retry_at.pop(entry_id, None)

    def _nack(self, entry_id: str) -> None:
        self._retry_at[entry_id] = self._clock() + self._retry_interval

    def close(self) -> None:
        self._client.close()
