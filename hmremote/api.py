"""Stable public API for building tooling on top of hm-remote.

This module is the supported integration surface for third-party callers.
Avoid importing from private/internal modules unless intentionally depending on
non-stable internals.
"""

from __future__ import annotations

from collections.abc import Callable

from hmremote.core.address import parse_address
from hmremote.core.cancellation import CancellationSignal
from hmremote.core.config import HM_CHARACTERISTIC_UUID, TRANSPORT_UNIT, Settings, load_settings
from hmremote.core.console import chunk_payload, decode_notification, validate_command
from hmremote.core.errors import (
    AdapterStoppedError,
    BluetoothError,
    ConfigError,
    ConnectRetryExhaustedError,
    HMRemoteError,
    InvalidAddressError,
    NoAdapterError,
    NotConnectedError,
    NotHMDeviceError,
    SignalRegistrationError,
    TerminalIOError,
    UnknownError,
)
from hmremote.core.model import (
    Advertised,
    Characteristic,
    ClassifiedEvent,
    DeviceProperties,
    Lost,
    NewlyDiscovered,
    Seen,
    SessionEnd,
)
from hmremote.core.service import RadioFactory, RemoteService

__all__ = [
    "HMRemoteError",
    "AdapterStoppedError",
    "BluetoothError",
    "ConfigError",
    "ConnectRetryExhaustedError",
    "InvalidAddressError",
    "NoAdapterError",
    "NotConnectedError",
    "NotHMDeviceError",
    "SignalRegistrationError",
    "TerminalIOError",
    "UnknownError",
    "Advertised",
    "Characteristic",
    "ClassifiedEvent",
    "DeviceProperties",
    "Lost",
    "NewlyDiscovered",
    "Seen",
    "SessionEnd",
    "CancellationSignal",
    "Settings",
    "HM_CHARACTERISTIC_UUID",
    "TRANSPORT_UNIT",
    "chunk_payload",
    "decode_notification",
    "parse_address",
    "validate_command",
    "Client",
]


class Client:
    """Public client for scanning and talking to HM series devices.

    A `Client` wraps radio setup, cancellation and the console session behind
    a stable API intended for third-party tools (GUI/TUI/services/scripts).
    Pass your own ``cancellation`` to stop a running operation from another
    thread; otherwise SIGINT is used.
    """

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        radio_factory: RadioFactory | None = None,
        cancellation: CancellationSignal | None = None,
        echo: Callable[[str], None] = print,
    ) -> None:
        self._service = RemoteService(
            settings=settings if settings is not None else load_settings(),
            radio_factory=radio_factory,
            cancellation=cancellation,
            echo=echo,
        )

    @property
    def settings(self) -> Settings:
        return self._service.settings

    def scan(
        self,
        on_event: Callable[[ClassifiedEvent], None],
        *,
        verbose: bool = False,
        filter_unnamed: bool = False,
    ) -> None:
        self._service.scan(verbose=verbose, filter_unnamed=filter_unnamed, emit=on_event)

    def connect(self, address: str, read_line: Callable[[], str]) -> SessionEnd | None:
        return self._service.connect(address, read_line=read_line)
