"""Single-worker reconciliation loop."""

from __future__ import annotations

import logging
from threading import Event, Thread
from typing import Optional

from lb_controller.errors import LBControllerError

from .events import MalformedEvent, UnsupportedAction, decode_event
from .handler import RoutingEventHandler
from .subscriptions import Delivery, Subscription

LOG = logging.getLogger(__name__)


class ReconciliationLoop(Thread):
    """Receive routing events one at a time and apply them in delivery order.

    An event is acknowledged only after its controller calls completed.  A
    failed event is left unacknowledged so the subscription redelivers it;
    nothing is retried here.
    """

    def __init__(
        self,
        subscription: Subscription,
        handler: RoutingEventHandler,
        stop_event: Event,
        interval: float = 1.0,
    ) -> None:
        super().__init__(daemon=True, name="routing-reconciler")
        self._subscription = subscription
        self._handler = handler
        self._stop_event = stop_event
        self._interval = interval

    def run(self) -> None:
        LOG.info("Reconciliation loop started")
        while not self._stop_event.is_set():
            try:
                self.poll()
            except Exception:  # pragma: no cover - logged below
                LOG.exception("reconciliation loop encountered an error")
                self._stop_event.wait(self._interval)
        LOG.info("Reconciliation loop stopped")

    def poll(self) -> Optional[bool]:
        """Process at most one message.

        Returns ``None`` when nothing was received, otherwise whether the
        message was acknowledged.
        """

        delivery = self._subscription.receive(timeout=self._interval)
        if delivery is None:
            return None
        return self.process(delivery)

    def drain(self) -> int:
        """Process messages until none is immediately available or one fails."""

        processed = 0
        while True:
            delivery = self._subscription.receive(timeout=0)
            if delivery is None:
                return processed
            processed += 1
            if not self.process(delivery):
                return processed

    def process(self, delivery: Delivery) -> bool:
        try:
            event = decode_event(delivery.body)
        except UnsupportedAction as exc:
            LOG.info("Ignoring message %s: %s", delivery.id, exc)
            delivery.ack()
            return True
        except MalformedEvent as exc:
            LOG.error("Discarding malformed message %s: %s", delivery.id, exc)
            delivery.ack()
            return True

        try:
            self._handler.handle(event)
        except LBControllerError as exc:
            LOG.error(
                "Failed to apply %s (message %s): %s: %s; left unacknowledged%s",
                event.describe(),
                delivery.id,
                type(exc).__name__,
                exc,
                ", will be retried on redelivery" if exc.retryable else "",
            )
            delivery.nack()
            return False
        except Exception:
            delivery.nack()
            raise

        delivery.ack()
        LOG.info("Applied %s", event.describe())
        return True
