#!/usr/bin/env python3
"""
TimedHandoffBuffer - pass variable-length blocks between threads.

The capture thread pushes small, irregular blocks; the consumer blocks until
enough data has accumulated and then takes everything at once.
"""
from __future__ import annotations

import threading
import time
from collections.abc import Iterable
from typing import Generic, TypeVar

from voxmode.core.errors import BufferTimeout

T = TypeVar("T")


class TimedHandoffBuffer(Generic[T]):
    """Append-only buffer with a blocking, timeout-bounded drain."""

    def __init__(self) -> None:
        self._items: list[T] = []
        self._lock = threading.Lock()
        self._ready = threading.Condition(self._lock)

    def push(self, chunk: Iterable[T]) -> None:
        """Append ``chunk`` and wake any waiting consumer. Never drops data."""
        with self._ready:
            self._items.extend(chunk)
            self._ready.notify_all()

    def drain_when_at_least(self, target: int, timeout: float) -> list[T]:
        """
        Block until at least ``target`` items are buffered, then take them all.

        The returned list may be longer than ``target``. On timeout raises
        ``BufferTimeout`` and leaves the buffered items in place.

        Args:
            target: Minimum number of buffered items to wait for
            timeout: Maximum time to wait, in seconds

        """
        deadline = time.monotonic() + timeout
        with self._ready:
            # Condition waits can wake spuriously; re-check against the deadline.
            while len(self._items) < target:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise BufferTimeout(target, len(self._items), timeout)
                self._ready.wait(remaining)

            drained, self._items = self._items, []
            return drained

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
