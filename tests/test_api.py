from __future__ import annotations

from hmremote import api
from hmremote.api import CancellationSignal, Client, NewlyDiscovered, Settings
from hmremote.core.model import DeviceUpdated
from fakes import FakePeripheral, FakeRadio

ADDR = "AA:BB:CC:DD:EE:FF"


def test_public_exports_resolve() -> None:
    for name in api.__all__:
        assert hasattr(api, name), name


def test_public_client_scan() -> None:
    radio = FakeRadio(FakePeripheral(ADDR, "HM-10"))
    radio.push(DeviceUpdated(ADDR))
    cancellation = CancellationSignal()
    events: list = []

    def on_event(event) -> None:
        events.append(event)
        cancellation.request()

    client = Client(settings=Settings(), radio_factory=lambda settings: radio, cancellation=cancellation)
    client.scan(on_event)

    assert events == [NewlyDiscovered(ADDR, f"{ADDR} HM-10")]
    assert radio.closed


def test_public_client_uses_given_settings() -> None:
    settings = Settings(adapter="hci3")
    client = Client(settings=settings, radio_factory=lambda s: FakeRadio(), cancellation=CancellationSignal())
    assert client.settings is settings
