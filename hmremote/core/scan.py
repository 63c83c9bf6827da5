"""Classification of radio events into a per-address discovery lifecycle."""

from __future__ import annotations

import logging
from collections.abc import Callable

from hmremote.core.channels import Channel, ChannelClosed, select
from hmremote.core.errors import AdapterStoppedError
from hmremote.core.model import (
    Advertised,
    ClassifiedEvent,
    DeviceDiscovered,
    DeviceLost,
    DeviceRecord,
    DeviceStatus,
    DeviceUpdated,
    Lost,
    NewlyDiscovered,
    RadioEvent,
    Seen,
)
from hmremote.transports.base import Radio

LOGGER = logging.getLogger(__name__)


class ScanEngine:
    """Tracks discovered devices and reports what changed about them.

    The record table belongs to whichever thread drives :meth:`run` (or
    :meth:`classify`); it is not shared.
    """

    def __init__(self, radio: Radio, *, verbose: bool = False, filter_unnamed: bool = False) -> None:
        self.radio = radio
        self.verbose = verbose
        self.filter_unnamed = filter_unnamed
        self.records: dict[str, DeviceRecord] = {}

    def classify(self, event: RadioEvent) -> list[ClassifiedEvent]:
        if isinstance(event, DeviceDiscovered):
            self.records.setdefault(event.address, DeviceRecord(address=event.address))
            return [Advertised(event.address)] if self.verbose else []

        if isinstance(event, DeviceLost):
            self.records.pop(event.address, None)
            return [Lost(event.address, self._display(event.address))]

        if isinstance(event, DeviceUpdated):
            reported: list[ClassifiedEvent] = []
            if self.verbose:
                reported.append(Seen(event.address, self._display(event.address)))
            record = self.records.setdefault(event.address, DeviceRecord(address=event.address))
            if record.status is DeviceStatus.DISCOVERED:
                properties = self.radio.peripheral(event.address).properties()
                record.name = properties.local_name
                if record.name is not None or not self.filter_unnamed:
                    reported.append(NewlyDiscovered(event.address, properties.display))
                record.promote()
            return reported

        return []

    def run(
        self,
        events: Channel[RadioEvent],
        cancel: Channel[None],
        emit: Callable[[ClassifiedEvent], None],
    ) -> None:
        """Scan until ``cancel`` fires, emitting classified events as they occur."""
        self.radio.start_scan()
        while True:
            try:
                source, event = select([cancel, events])
            except ChannelClosed as exc:
                if exc.channel is events:
                    raise AdapterStoppedError() from None
                raise
            if source is cancel:
                LOGGER.debug("Scan cancelled with %d tracked device(s)", len(self.records))
                break
            for classified in self.classify(event):
                emit(classified)
        self.radio.stop_scan()

    def _display(self, address: str) -> str:
        return self.radio.peripheral(address).properties().display
