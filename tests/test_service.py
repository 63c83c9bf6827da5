from __future__ import annotations

import threading

import pytest

from hmremote.core.cancellation import CancellationSignal
from hmremote.core.config import Settings
from hmremote.core.errors import AdapterStoppedError, InvalidAddressError, NotHMDeviceError
from hmremote.core.model import DeviceDiscovered, DeviceUpdated, NewlyDiscovered, SessionEnd
from hmremote.core.service import RemoteService
from fakes import FakePeripheral, FakeRadio

ADDR = "AA:BB:CC:DD:EE:FF"


class LinePrompt:
    def __init__(self, *lines: str) -> None:
        self.lines = list(lines)
        self.release = threading.Event()

    def __call__(self) -> str:
        if self.lines:
            return self.lines.pop(0)
        self.release.wait(5)
        raise EOFError("no more input")


def _service(radio: FakeRadio, cancellation: CancellationSignal, echoed: list[str]) -> RemoteService:
    return RemoteService(
        settings=Settings(write_delay_s=0.0),
        radio_factory=lambda settings: radio,
        cancellation=cancellation,
        echo=echoed.append,
    )


def test_connect_end_to_end() -> None:
    device = FakePeripheral(ADDR, "HM-10", connect_failures=1)
    device.on_write = lambda frame: device.notify(b"OK+NAME:HM-10")
    radio = FakeRadio(device)
    radio.push(DeviceDiscovered(ADDR), DeviceUpdated(ADDR))
    echoed: list[str] = []

    reason = _service(radio, CancellationSignal(), echoed).connect(
        ADDR.lower(), read_line=LinePrompt("AT+NAME?", "quit")
    )

    assert reason is SessionEnd.USER_QUIT
    assert device.connect_calls == 2
    assert device.writes == [b"AT+NAME?"]
    assert echoed == [
        f"Scanning for {ADDR}",
        f"Connecting to {ADDR}",
        f"Connected: {ADDR} HM-10",
        "OK+NAME:HM-10",
    ]
    assert radio.scan_starts == 1
    assert radio.scan_stops == 1
    assert radio.closed


def test_connect_incompatible_device_writes_nothing() -> None:
    device = FakePeripheral(ADDR, "Speaker", characteristics=())
    radio = FakeRadio(device)
    radio.push(DeviceUpdated(ADDR))
    prompt = LinePrompt("AT")

    with pytest.raises(NotHMDeviceError):
        _service(radio, CancellationSignal(), []).connect(ADDR, read_line=prompt)

    assert device.writes == []
    assert device.on_notification is None
    assert prompt.lines == ["AT"]
    assert radio.closed


def test_connect_cancelled_before_device_found() -> None:
    radio = FakeRadio()
    radio.push(DeviceDiscovered(ADDR))
    cancellation = CancellationSignal()
    cancellation.request()

    assert _service(radio, cancellation, []).connect(ADDR, read_line=LinePrompt()) is None
    assert radio.closed


def test_connect_cancelled_while_retrying() -> None:
    cancellation = CancellationSignal()

    class NeverConnects(FakePeripheral):
        def connect(self) -> None:
            if self.connect_calls == 2:
                cancellation.request()
            super().connect()

    device = NeverConnects(ADDR, "HM-10", connect_failures=1_000_000)
    radio = FakeRadio(device)
    radio.push(DeviceUpdated(ADDR))
    echoed: list[str] = []
    prompt = LinePrompt("AT")

    reason = _service(radio, cancellation, echoed).connect(ADDR, read_line=prompt)

    assert reason is SessionEnd.CANCELLED
    assert device.connect_calls == 3
    assert echoed == [f"Scanning for {ADDR}", f"Connecting to {ADDR}"]
    assert prompt.lines == ["AT"]
    assert radio.closed


def test_connect_rejects_bad_address_before_touching_radio() -> None:
    def factory(settings: Settings) -> FakeRadio:
        raise AssertionError("radio should not be opened")

    service = RemoteService(radio_factory=factory, cancellation=CancellationSignal())
    with pytest.raises(InvalidAddressError):
        service.connect("not-an-address", read_line=LinePrompt())


def test_connect_adapter_stopped_while_searching() -> None:
    radio = FakeRadio()
    radio.push(DeviceDiscovered("11:22:33:44:55:66"))
    radio.end_stream()

    with pytest.raises(AdapterStoppedError):
        _service(radio, CancellationSignal(), []).connect(ADDR, read_line=LinePrompt())
    assert radio.closed


def test_scan_stops_emitting_once_cancelled() -> None:
    radio = FakeRadio(FakePeripheral(ADDR, "HM-10"), FakePeripheral("11:22:33:44:55:66", "Other"))
    radio.push(
        DeviceDiscovered(ADDR),
        DeviceUpdated(ADDR),
        DeviceDiscovered("11:22:33:44:55:66"),
        DeviceUpdated("11:22:33:44:55:66"),
    )
    cancellation = CancellationSignal()
    emitted: list = []

    def emit(event) -> None:
        emitted.append(event)
        cancellation.request()

    _service(radio, cancellation, []).scan(emit=emit)

    assert emitted == [NewlyDiscovered(ADDR, f"{ADDR} HM-10")]
    assert not radio.scanning
    assert radio.closed


def test_scan_adapter_failure() -> None:
    radio = FakeRadio()
    radio.end_stream()

    with pytest.raises(AdapterStoppedError):
        _service(radio, CancellationSignal(), []).scan(emit=lambda event: None)
    assert radio.closed
