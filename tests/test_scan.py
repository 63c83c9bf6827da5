from __future__ import annotations

import threading

import pytest

from hmremote.core.channels import Channel
from hmremote.core.errors import AdapterStoppedError
from hmremote.core.model import (
    Advertised,
    DeviceDisconnected,
    DeviceDiscovered,
    DeviceLost,
    DeviceStatus,
    DeviceUpdated,
    Lost,
    NewlyDiscovered,
    Seen,
)
from hmremote.core.scan import ScanEngine
from fakes import FakePeripheral, FakeRadio

ADDR = "AA:BB:CC:DD:EE:FF"
OTHER = "11:22:33:44:55:66"


def _radio() -> FakeRadio:
    return FakeRadio(FakePeripheral(ADDR, "HM-10"), FakePeripheral(OTHER, None))


def test_quiet_scan_reports_new_once() -> None:
    engine = ScanEngine(_radio())

    assert engine.classify(DeviceDiscovered(ADDR)) == []
    assert engine.classify(DeviceUpdated(ADDR)) == [NewlyDiscovered(ADDR, f"{ADDR} HM-10")]
    assert engine.classify(DeviceUpdated(ADDR)) == []
    assert engine.records[ADDR].status is DeviceStatus.UPDATED
    assert engine.records[ADDR].name == "HM-10"


def test_verbose_scan_reports_every_step() -> None:
    engine = ScanEngine(_radio(), verbose=True)

    assert engine.classify(DeviceDiscovered(ADDR)) == [Advertised(ADDR)]
    assert engine.classify(DeviceUpdated(ADDR)) == [
        Seen(ADDR, f"{ADDR} HM-10"),
        NewlyDiscovered(ADDR, f"{ADDR} HM-10"),
    ]
    assert engine.classify(DeviceUpdated(ADDR)) == [Seen(ADDR, f"{ADDR} HM-10")]


def test_update_without_prior_sighting_still_reports_new() -> None:
    engine = ScanEngine(_radio())
    assert engine.classify(DeviceUpdated(ADDR)) == [NewlyDiscovered(ADDR, f"{ADDR} HM-10")]


def test_status_never_reverts_on_repeated_advertisement() -> None:
    engine = ScanEngine(_radio())
    engine.classify(DeviceDiscovered(ADDR))
    engine.classify(DeviceUpdated(ADDR))

    engine.classify(DeviceDiscovered(ADDR))
    assert engine.records[ADDR].status is DeviceStatus.UPDATED
    assert engine.classify(DeviceUpdated(ADDR)) == []


def test_new_fires_at_most_once_per_address() -> None:
    engine = ScanEngine(_radio(), verbose=True)
    reported = []
    for event in [DeviceDiscovered(ADDR), *[DeviceUpdated(ADDR)] * 10, DeviceDiscovered(ADDR), DeviceUpdated(ADDR)]:
        reported.extend(engine.classify(event))
    assert sum(isinstance(e, NewlyDiscovered) for e in reported) == 1


def test_filter_unnamed_suppresses_new_but_not_verbose_updates() -> None:
    radio = _radio()
    engine = ScanEngine(radio, verbose=True, filter_unnamed=True)

    engine.classify(DeviceDiscovered(OTHER))
    assert engine.classify(DeviceUpdated(OTHER)) == [Seen(OTHER, f"{OTHER} <Unnamed>")]

    # A name showing up later does not re-trigger the first-update report.
    radio.peripherals[OTHER].name = "Late"
    assert engine.classify(DeviceUpdated(OTHER)) == [Seen(OTHER, f"{OTHER} Late")]


def test_unnamed_reported_without_filter() -> None:
    engine = ScanEngine(_radio())
    assert engine.classify(DeviceUpdated(OTHER)) == [NewlyDiscovered(OTHER, f"{OTHER} <Unnamed>")]


def test_lost_is_unconditional_and_forgets_device() -> None:
    engine = ScanEngine(_radio())
    engine.classify(DeviceDiscovered(ADDR))
    engine.classify(DeviceUpdated(ADDR))

    assert engine.classify(DeviceLost(ADDR)) == [Lost(ADDR, f"{ADDR} HM-10")]
    assert ADDR not in engine.records
    assert engine.classify(DeviceLost(OTHER)) == [Lost(OTHER, f"{OTHER} <Unnamed>")]


def test_disconnect_events_are_ignored() -> None:
    engine = ScanEngine(_radio(), verbose=True)
    assert engine.classify(DeviceDisconnected(ADDR)) == []


def test_run_stops_on_cancellation_without_further_events() -> None:
    radio = _radio()
    engine = ScanEngine(radio)
    events: Channel = Channel("events")
    cancel: Channel = Channel("cancel")
    cancel.send(None)
    events.send(DeviceUpdated(ADDR))

    emitted: list = []
    engine.run(events, cancel, emitted.append)

    assert emitted == []
    assert radio.scan_starts == 1
    assert radio.scan_stops == 1
    assert not radio.scanning


def test_run_emits_until_cancelled_from_another_thread() -> None:
    radio = _radio()
    engine = ScanEngine(radio)
    events: Channel = Channel("events")
    cancel: Channel = Channel("cancel")
    emitted: list = []
    seen_new = threading.Event()

    def emit(event) -> None:
        emitted.append(event)
        seen_new.set()

    worker = threading.Thread(target=engine.run, args=(events, cancel, emit))
    worker.start()
    events.send(DeviceDiscovered(ADDR))
    events.send(DeviceUpdated(ADDR))
    assert seen_new.wait(timeout=2)

    cancel.send(None)
    worker.join(timeout=2)
    assert not worker.is_alive()
    assert emitted == [NewlyDiscovered(ADDR, f"{ADDR} HM-10")]
    assert not radio.scanning


def test_run_fails_when_event_source_ends() -> None:
    engine = ScanEngine(_radio())
    events: Channel = Channel("events")
    events.close()
    with pytest.raises(AdapterStoppedError):
        engine.run(events, Channel("cancel"), lambda event: None)
