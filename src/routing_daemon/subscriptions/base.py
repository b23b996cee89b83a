"""Message subscription primitives consumed by the reconciliation loop."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Optional, Union


class Delivery:
    """One received message awaiting acknowledgement.

    A delivery is settled exactly once: :meth:`ack` removes the message from
    the subscription, :meth:`nack` leaves it there for redelivery.
    """

    def __init__(
        self,
        message_id: str,
        body: Union[str, bytes],
        on_ack: Callable[[], None],
        on_nack: Callable[[], None],
    ) -> None:
        self.id = message_id
        self.body = body
        self._on_ack = on_ack
        self._on_nack = on_nack
        self.settled = False

    def __repr__(self) -> str:
        return f"Delivery({self.id!r})"

    def _settle(self) -> None:
        if self.settled:
            raise RuntimeError(f"delivery {self.id} already settled")
        self.settled = True

    def ack(self) -> None:
        self._settle()
        self._on_ack()

    def nack(self) -> None:
        self._settle()
        self._on_nack()


class Subscription(ABC):
    @abstractmethod
    def receive(self, timeout: float) -> Optional[Delivery]:
        """Return the next message in delivery order, or ``None`` after ``timeout``."""

    def close(self) -> None:
        pass
