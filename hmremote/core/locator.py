"""Resolves a target hardware address into a connectable peripheral."""

from __future__ import annotations

import logging

from hmremote.core.address import same_address
from hmremote.core.channels import Channel, ChannelClosed, select
from hmremote.core.errors import AdapterStoppedError
from hmremote.core.model import DeviceUpdated, RadioEvent
from hmremote.transports.base import Peripheral, Radio

LOGGER = logging.getLogger(__name__)


def find_device(
    radio: Radio,
    address: str,
    events: Channel[RadioEvent],
    cancel: Channel[None],
) -> Peripheral | None:
    """Wait for ``address`` to be updated in the event stream.

    Returns ``None`` when cancellation wins the race. There is no timeout.
    """
    while True:
        try:
            source, event = select([events, cancel])
        except ChannelClosed as exc:
            if exc.channel is events:
                raise AdapterStoppedError() from None
            raise
        if source is cancel:
            LOGGER.debug("Search for %s cancelled", address)
            return None
        if isinstance(event, DeviceUpdated) and same_address(event.address, address):
            return radio.peripheral(address)
