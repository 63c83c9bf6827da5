"""Rehosts the radio's single-consumer event stream onto a shared channel."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable

from hmremote.core.channels import Channel, ChannelClosed
from hmremote.core.model import RadioEvent

LOGGER = logging.getLogger(__name__)


class EventRelay:
    """Pumps radio events, in receipt order, into :attr:`channel`.

    The channel is closed when the source stream ends (or fails), which every
    waiter observes as :class:`ChannelClosed` once pending events are drained.
    """

    def __init__(self, stream: Iterable[RadioEvent], *, name: str = "radio-events") -> None:
        self.channel: Channel[RadioEvent] = Channel(name)
        self._stream = stream
        self._thread = threading.Thread(target=self._pump, name="event-relay", daemon=True)

    def start(self) -> EventRelay:
        self._thread.start()
        return self

    def close(self) -> None:
        self.channel.close()

    def join(self, timeout: float | None = None) -> None:
        self._thread.join(timeout)

    def _pump(self) -> None:
        try:
            for event in self._stream:
                try:
                    self.channel.send(event)
                except ChannelClosed:
                    LOGGER.debug("Relay channel closed; dropping remaining radio events")
                    return
        except Exception:
            LOGGER.exception("Radio event stream failed")
        finally:
            LOGGER.debug("Radio event stream ended")
            self.channel.close()
