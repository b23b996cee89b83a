"""Spool-directory subscription.

The messaging bridge drops one file per routing event into a directory,
named so that lexical order is delivery order.  Acknowledging a message
deletes its file; a message that is not acknowledged stays at the head of
the queue and is delivered again after ``retry_interval`` seconds.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable, Dict, Optional

from .base import Delivery, Subscription

LOG = logging.getLogger(__name__)


class SpoolSubscription(Subscription):
    def __init__(
        self,
        path: Path,
        *,
        retry_interval: float = 5.0,
        poll_interval: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._path = Path(path)
        self._retry_interval = retry_interval
        self._poll_interval = poll_interval
        self._sleep = sleep
        self._clock = clock
        self._retry_at: Dict[str, float] = {}

    def receive(self, timeout: float) -> Optional[Delivery]:
        deadline = self._clock() + timeout
        while True:
            delivery = self._next()
            remaining = deadline - self._clock()
            if delivery is not None or remaining <= 0:
                return delivery
            self._sleep(min(self._poll_interval, remaining))

    def _next(self) -> Optional[Delivery]:
        if not self._path.is_dir():
            LOG.debug("spool directory %s does not exist yet", self._path)
            return None

        messages = sorted(
            entry
            for entry in self._path.iterdir()
            if entry.is_file() and not entry.name.startswith(".")
        )
        if not messages:
            return None

        # Only the head is eligible, so a failed message blocks later ones.
        head = messages[0]
        if self._retry_at.get(head.name, 0.0) > self._clock():
            return None

        try:
            body = head.read_text()
        except FileNotFoundError:
            return None

        return Delivery(
            head.name,
            body,
            on_ack=lambda: self._ack(head),
            on_nack=lambda: self._nack(head),
        )

    def _ack(self, entry: Path) -> None:
        self._retry_at.pop(entry.name, None)
        entry.unlink(missing_ok=True)
        LOG.debug("acknowledged spooled message %s", entry.name)

    def _nack(self, entry: Path) -> None:
        self._retry_at[entry.name] = self._clock() + self._retry_interval
        LOG.debug(
            "message %s left in spool, redelivery in %ss", entry.name, self._retry_interval
        )
