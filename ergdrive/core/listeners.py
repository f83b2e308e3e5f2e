"""Ordered callback registry with stable-copy dispatch."""

from __future__ import annotations

import logging
from typing import Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ListenerRegistry(Generic[T]):
    """Subscription set notified in registration order.

    A dispatch iterates over the listeners registered when it began. Listeners
    added during a dispatch wait for the next one; listeners removed during a
    dispatch are skipped if not yet called.
    """

    def __init__(self, name: str) -> None:
        self._name = name
        self._listeners: dict[Callable[[T], None], None] = {}

    def __len__(self) -> int:
        return len(self._listeners)

    def __contains__(self, callback: object) -> bool:
        return callback in self._listeners

    def add(self, callback: Callable[[T], None]) -> Callable[[T], None]:
        self._listeners[callback] = None
        return callback

    def remove(self, callback: Callable[[T], None]) -> bool:
        if callback not in self._listeners:
            return False
        del self._listeners[callback]
        return True

    def clear(self) -> None:
        self._listeners.clear()

    def notify(self, value: T) -> None:
        for callback in tuple(self._listeners):
            if callback not in self._listeners:
                continue
            try:
                callback(value)
            except Exception:
                logger.exception("%s listener %r failed", self._name, callback)
