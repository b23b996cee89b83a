"""Lazily loaded views of the backend's routing objects."""

from __future__ import annotations

import logging
from typing import Callable, Dict, Generic, Iterable, Iterator, Optional, TypeVar

LOG = logging.getLogger(__name__)

T = TypeVar("T")


class CachedCollection(Generic[T]):
    """A name-keyed collection with an explicit loaded/unloaded state.

    The first access runs ``loader`` once and stores its result; after that
    the collection is only changed through :meth:`add` and :meth:`discard`,
    which the controller calls after the backend confirmed a mutation.
    :meth:`invalidate` returns the collection to the unloaded state.
    """

    def __init__(self, label: str, loader: Callable[[], Iterable[tuple[str, T]]]) -> None:
        self._label = label
        self._loader = loader
        self._items: Optional[Dict[str, T]] = None

    @property
    def loaded(self) -> bool:
        return self._items is not None

    def _ensure(self) -> Dict[str, T]:
        if self._items is None:
            LOG.info("Requesting list of %s from load balancer", self._label)
            self._items = dict(self._loader())
            LOG.debug("Loaded %d %s", len(self._items), self._label)
        return self._items

    def invalidate(self) -> None:
        self._items = None

    def add(self, name: str, item: T) -> None:
        self._ensure()[name] = item

    def discard(self, name: str) -> Optional[T]:
        return self._ensure().pop(name, None)

    def get(self, name: str) -> Optional[T]:
        return self._ensure().get(name)

    def names(self) -> list[str]:
        return list(self._ensure())

    def __contains__(self, name: object) -> bool:
        return name in self._ensure()

    def __getitem__(self, name: str) -> T:
        return self._ensure()[name]

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._ensure()))

    def __len__(self) -> int:
        return len(self._ensure())
