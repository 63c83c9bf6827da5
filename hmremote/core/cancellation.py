"""Single-shot, broadcast cancellation driven by the interrupt signal."""

from __future__ import annotations

import logging
import signal
import threading
from typing import Any

from hmremote.core.channels import Channel, ChannelClosed
from hmremote.core.errors import SignalRegistrationError

LOGGER = logging.getLogger(__name__)


class CancellationSignal:
    """Turns one interrupt request into a notification for every subscriber.

    Each call to :meth:`subscribe` yields an independent channel that receives
    exactly one item once :meth:`request` has been called. Subscribing after
    the request still delivers the notification.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._requested = threading.Event()
        self._subscribers: list[Channel[None]] = []
        self._interrupted = threading.Event()
        self._previous_handler: Any = None
        self._installed = False

    @property
    def requested(self) -> bool:
        return self._requested.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        return self._requested.wait(timeout)

    def subscribe(self) -> Channel[None]:
        channel: Channel[None] = Channel("cancellation")
        with self._lock:
            self._subscribers.append(channel)
            if self._requested.is_set():
                channel.send(None)
        return channel

    def request(self) -> None:
        with self._lock:
            if self._requested.is_set():
                return
            self._requested.set()
            subscribers = tuple(self._subscribers)
        LOGGER.debug("Cancellation requested; notifying %d waiter(s)", len(subscribers))
        for channel in subscribers:
            try:
                channel.send(None)
            except ChannelClosed:
                LOGGER.debug("Skipping closed cancellation subscriber")

    def install(self) -> None:
        """Route SIGINT into this signal through a watcher thread."""
        try:
            self._previous_handler = signal.signal(signal.SIGINT, self._on_interrupt)
        except (ValueError, OSError) as exc:
            raise SignalRegistrationError(
                f"Signal handler registration error: {exc}"
            ) from exc
        self._installed = True
        watcher = threading.Thread(target=self._watch, name="interrupt-watcher", daemon=True)
        watcher.start()

    def uninstall(self) -> None:
        if not self._installed:
            return
        try:
            previous = self._previous_handler if self._previous_handler is not None else signal.SIG_DFL
            signal.signal(signal.SIGINT, previous)
        except (ValueError, OSError) as exc:
            LOGGER.debug("Could not restore SIGINT handler: %s", exc)
        self._installed = False

    def _on_interrupt(self, signum: int, frame: Any) -> None:
        self._interrupted.set()

    def _watch(self) -> None:
        self._interrupted.wait()
        self.request()
