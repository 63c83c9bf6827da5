"""Unbounded in-process channels with a multi-way select.

A :class:`Channel` is a FIFO that never blocks its producers. Any number of
threads may wait on a channel at once through :func:`select`, which blocks
until one of several channels has an item (or has been closed and drained).
"""

from __future__ import annotations

import threading
import time
from collections import deque
from collections.abc import Sequence
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class ChannelClosed(Exception):
    """Raised when receiving from a drained closed channel or sending to a closed one."""

    def __init__(self, channel: Channel[Any]) -> None:
        super().__init__(f"Channel '{channel.name}' is closed")
        self.channel = channel


class SelectTimeout(Exception):
    """Raised when :func:`select` times out with no channel ready."""


class Channel(Generic[T]):
    def __init__(self, name: str = "channel") -> None:
        self.name = name
        self._items: deque[T] = deque()
        self._closed = False
        self._lock = threading.Lock()
        self._waiters: set[threading.Event] = set()

    def __repr__(self) -> str:
        return f"Channel({self.name!r}, pending={len(self._items)}, closed={self._closed})"

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, item: T) -> None:
        with self._lock:
            if self._closed:
                raise ChannelClosed(self)
            self._items.append(item)
            waiters = tuple(self._waiters)
        for waiter in waiters:
            waiter.set()

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            waiters = tuple(self._waiters)
        for waiter in waiters:
            waiter.set()

    def try_recv(self) -> tuple[bool, T | None]:
        """Return ``(True, item)`` if an item is buffered, ``(False, None)`` otherwise."""
        with self._lock:
            if self._items:
                return True, self._items.popleft()
            if self._closed:
                raise ChannelClosed(self)
            return False, None

    def recv(self, timeout: float | None = None) -> T:
        _, item = select([self], timeout=timeout)
        return item

    def _watch(self, waiter: threading.Event) -> None:
        with self._lock:
            self._waiters.add(waiter)

    def _unwatch(self, waiter: threading.Event) -> None:
        with self._lock:
            self._waiters.discard(waiter)


def select(channels: Sequence[Channel[Any]], timeout: float | None = None) -> tuple[Channel[Any], Any]:
    """Wait until any of ``channels`` is ready and receive from it.

    Channels are polled in the given order, so earlier channels win ties.
    Raises :class:`ChannelClosed` for the first polled channel that is closed
    and drained, and :class:`SelectTimeout` when ``timeout`` elapses.
    """
    if not channels:
        raise ValueError("select() needs at least one channel")

    deadline = None if timeout is None else time.monotonic() + timeout
    wakeup = threading.Event()
    for channel in channels:
        channel._watch(wakeup)
    try:
        while True:
            # Clear before polling: a send racing with the poll re-sets it.
            wakeup.clear()
            for channel in channels:
                ready, item = channel.try_recv()
                if ready:
                    return channel, item
            if deadline is None:
                wakeup.wait()
                continue
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise SelectTimeout(f"No channel ready within {timeout}s")
            wakeup.wait(remaining)
    finally:
        for channel in channels:
            channel._unwatch(wakeup)
