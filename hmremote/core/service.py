"""Service layer used by the CLI and the public API."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from hmremote.core.address import parse_address
from hmremote.core.cancellation import CancellationSignal
from hmremote.core.config import Settings
from hmremote.core.connection import ConnectionManager
from hmremote.core.console import ConsoleSession
from hmremote.core.locator import find_device
from hmremote.core.model import ClassifiedEvent, SessionEnd
from hmremote.core.relay import EventRelay
from hmremote.core.scan import ScanEngine
from hmremote.transports.base import Radio

LOGGER = logging.getLogger(__name__)

RadioFactory = Callable[[Settings], Radio]


def _default_radio_factory(settings: Settings) -> Radio:
    from hmremote.transports.ble_gatt import BleakRadio

    return BleakRadio.from_settings(settings)


class RemoteService:
    """Runs the ``scan`` and ``connect`` flows against a radio backend.

    The backend is created per operation and always closed afterwards. If no
    ``cancellation`` is supplied, one is created per operation and wired to
    SIGINT for its duration.
    """

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        radio_factory: RadioFactory | None = None,
        cancellation: CancellationSignal | None = None,
        echo: Callable[[str], None] = print,
    ) -> None:
        self.settings = settings or Settings()
        self.radio_factory = radio_factory or _default_radio_factory
        self.cancellation = cancellation
        self.echo = echo

    def scan(
        self,
        *,
        verbose: bool = False,
        filter_unnamed: bool = False,
        emit: Callable[[ClassifiedEvent], None],
    ) -> None:
        with self._radio_session() as (cancellation, radio, relay):
            engine = ScanEngine(radio, verbose=verbose, filter_unnamed=filter_unnamed)
            engine.run(relay.channel, cancellation.subscribe(), emit)

    def connect(self, address: str, *, read_line: Callable[[], str]) -> SessionEnd | None:
        """Find ``address``, connect, and run the console.

        Returns ``None`` when cancelled before the device was found.
        """
        device_address = parse_address(address)
        with self._radio_session() as (cancellation, radio, relay):
            cancel = cancellation.subscribe()
            radio.start_scan()

            self.echo(f"Scanning for {device_address}")
            device = find_device(radio, device_address, relay.channel, cancel)
            radio.stop_scan()
            if device is None:
                return None

            self.echo(f"Connecting to {device.address}")
            manager = ConnectionManager(
                self.settings.characteristic_uuid,
                retry=self.settings.connect_retry,
            )
            if not manager.connect(device, cancelled=lambda: cancellation.requested):
                return SessionEnd.CANCELLED
            self.echo(f"Connected: {device.properties().display}")
            characteristic = manager.verify(device)

            session = ConsoleSession(
                device,
                characteristic,
                events=relay.channel,
                cancel=cancel,
                read_line=read_line,
                echo=self.echo,
                write_delay_s=self.settings.write_delay_s,
            )
            reason = session.run()
            LOGGER.debug("Session with %s ended: %s", device.address, reason.value)
            return reason

    @contextmanager
    def _radio_session(self) -> Iterator[tuple[CancellationSignal, Radio, EventRelay]]:
        cancellation = self.cancellation
        installed = False
        if cancellation is None:
            cancellation = CancellationSignal()
            cancellation.install()
            installed = True
        try:
            radio = self.radio_factory(self.settings)
            try:
                relay = EventRelay(radio.events()).start()
                try:
                    yield cancellation, radio, relay
                finally:
                    relay.close()
            finally:
                radio.close()
        finally:
            if installed:
                cancellation.uninstall()
