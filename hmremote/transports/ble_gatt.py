"""BLE GATT radio implementation on top of bleak.

bleak is asyncio-only, while the console core is thread based. ``BleakRadio``
owns a private event loop running on a daemon thread and marshals every call
onto it with :func:`asyncio.run_coroutine_threadsafe`.
"""

from __future__ import annotations

import asyncio
import logging
import queue
import threading
import time
from collections.abc import Callable, Coroutine, Iterator
from dataclasses import dataclass
from typing import Any, TypeVar

from bleak import BleakClient, BleakScanner
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData
from bleak.exc import BleakError

from hmremote.core.config import Settings
from hmremote.core.errors import BluetoothError, HMRemoteError, NoAdapterError, NotConnectedError, UnknownError
from hmremote.core.model import (
    Characteristic,
    DeviceDiscovered,
    DeviceDisconnected,
    DeviceLost,
    DeviceProperties,
    DeviceUpdated,
    RadioEvent,
)

T = TypeVar("T")
LOGGER = logging.getLogger(__name__)

LOOP_JOIN_TIMEOUT_S = 5.0


def translate_bleak_error(exc: BleakError) -> BluetoothError:
    message = str(exc)
    lowered = message.lower()
    if "not connected" in lowered:
        return NotConnectedError(message)
    if "adapter" in lowered and ("no " in lowered or "not found" in lowered):
        return NoAdapterError(f"Cannot find bluetooth adapter: {message}")
    return BluetoothError(f"Bluetooth error: {message}")


@dataclass
class _Sighting:
    device: BLEDevice | None = None
    name: str | None = None


class BleakPeripheral:
    def __init__(self, radio: BleakRadio, address: str) -> None:
        self.address = address
        self._radio = radio
        self._client: BleakClient | None = None

    def properties(self) -> DeviceProperties:
        return self._radio._properties(self.address)

    def is_connected(self) -> bool:
        return self._client is not None and self._client.is_connected

    def connect(self) -> None:
        self._radio._call(self._connect())

    def disconnect(self) -> None:
        if self._client is None:
            return
        self._radio._call(self._client.disconnect())

    def discover_characteristics(self) -> list[Characteristic]:
        client = self._require_client()
        return self._radio._call(self._characteristics(client))

    def subscribe(self, characteristic: Characteristic, on_notification: Callable[[bytes], None]) -> None:
        client = self._require_client()

        def _notify_handler(_: Any, data: bytearray) -> None:
            on_notification(bytes(data))

        self._radio._call(client.start_notify(characteristic.uuid, _notify_handler))

    def write(self, characteristic: Characteristic, data: bytes) -> None:
        client = self._require_client()
        self._radio._call(
            client.write_gatt_char(
                characteristic.uuid,
                data,
                response=self._radio.write_with_response,
            )
        )

    async def _connect(self) -> None:
        if self._client is None:
            target: BLEDevice | str = self._radio._ble_device(self.address) or self.address
            self._client = BleakClient(
                target,
                disconnected_callback=self._on_disconnected,
                timeout=self._radio.connect_timeout_s,
                **self._radio._backend_kwargs(),
            )
        try:
            await self._client.connect()
        except TimeoutError as exc:
            raise NotConnectedError(f"Timed out connecting to {self.address}") from exc

    async def _characteristics(self, client: BleakClient) -> list[Characteristic]:
        return [
            Characteristic(uuid=char.uuid.lower(), properties=tuple(char.properties))
            for service in client.services
            for char in service.characteristics
        ]

    async def _shutdown(self) -> None:
        if self._client is not None and self._client.is_connected:
            try:
                await self._client.disconnect()
            except BleakError as exc:
                LOGGER.debug("Disconnect of %s during shutdown failed: %s", self.address, exc)

    def _on_disconnected(self, _: BleakClient) -> None:
        self._radio._publish(DeviceDisconnected(self.address))

    def _require_client(self) -> BleakClient:
        if self._client is None or not self._client.is_connected:
            raise NotConnectedError(f"{self.address} is not connected")
        return self._client


class BleakRadio:
    def __init__(
        self,
        *,
        adapter: str | None = None,
        connect_timeout_s: float = 10.0,
        lost_timeout_s: float = 30.0,
        write_with_response: bool = False,
    ) -> None:
        self.adapter = adapter
        self.connect_timeout_s = connect_timeout_s
        self.lost_timeout_s = lost_timeout_s
        self.write_with_response = write_with_response

        self._events: queue.Queue[RadioEvent | None] = queue.Queue()
        self._lock = threading.Lock()
        self._sightings: dict[str, _Sighting] = {}
        self._last_seen: dict[str, float] = {}
        self._peripherals: dict[str, BleakPeripheral] = {}
        self._scanner: BleakScanner | None = None
        self._sweeper: asyncio.Task[None] | None = None
        self._closed = False

        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run_event_loop, name="bleak-loop", daemon=True)
        self._thread.start()

    @classmethod
    def from_settings(cls, settings: Settings) -> BleakRadio:
        return cls(
            adapter=settings.adapter,
            connect_timeout_s=settings.connect_timeout_s,
            lost_timeout_s=settings.lost_timeout_s,
            write_with_response=settings.write_with_response,
        )

    def start_scan(self) -> None:
        self._call(self._start_scan())

    def stop_scan(self) -> None:
        self._call(self._stop_scan())

    def events(self) -> Iterator[RadioEvent]:
        while True:
            event = self._events.get()
            if event is None:
                return
            yield event

    def peripheral(self, address: str) -> BleakPeripheral:
        address = address.upper()
        with self._lock:
            peripheral = self._peripherals.get(address)
            if peripheral is None:
                peripheral = BleakPeripheral(self, address)
                self._peripherals[address] = peripheral
            return peripheral

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._call(self._shutdown())
        except HMRemoteError as exc:
            LOGGER.warning("Bluetooth shutdown incomplete: %s", exc)
        finally:
            self._events.put(None)
            self._loop.call_soon_threadsafe(self._loop.stop)
            self._thread.join(LOOP_JOIN_TIMEOUT_S)

    def _run_event_loop(self) -> None:
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_forever()
        finally:
            self._loop.close()

    def _call(self, coro: Coroutine[Any, Any, T]) -> T:
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        try:
            return future.result()
        except BleakError as exc:
            raise translate_bleak_error(exc) from exc
        except HMRemoteError:
            raise
        except TimeoutError as exc:
            raise BluetoothError("Bluetooth error: operation timed out") from exc
        except (OSError, EOFError) as exc:
            # D-Bus socket missing or closed underneath bleak.
            raise BluetoothError(f"Bluetooth error: {str(exc) or type(exc).__name__}") from exc
        except Exception as exc:
            LOGGER.debug("Unexpected backend failure", exc_info=True)
            raise UnknownError(f"Unknown error: {type(exc).__name__}: {exc}") from exc

    def _publish(self, event: RadioEvent) -> None:
        self._events.put(event)

    def _backend_kwargs(self) -> dict[str, Any]:
        return {"adapter": self.adapter} if self.adapter else {}

    def _properties(self, address: str) -> DeviceProperties:
        with self._lock:
            sighting = self._sightings.get(address)
            return DeviceProperties(address=address, local_name=sighting.name if sighting else None)

    def _ble_device(self, address: str) -> BLEDevice | None:
        with self._lock:
            sighting = self._sightings.get(address)
            return sighting.device if sighting else None

    def _is_connected(self, address: str) -> bool:
        with self._lock:
            peripheral = self._peripherals.get(address)
        return peripheral is not None and peripheral.is_connected()

    def _on_detection(self, device: BLEDevice, advertisement_data: AdvertisementData) -> None:
        address = device.address.upper()
        name = advertisement_data.local_name or device.name
        with self._lock:
            sighting = self._sightings.setdefault(address, _Sighting())
            sighting.device = device
            if name:
                sighting.name = name
        first = address not in self._last_seen
        self._last_seen[address] = time.monotonic()
        self._publish(DeviceDiscovered(address) if first else DeviceUpdated(address))

    async def _start_scan(self) -> None:
        if self._scanner is not None:
            return
        scanner = BleakScanner(detection_callback=self._on_detection, **self._backend_kwargs())
        await scanner.start()
        self._scanner = scanner
        self._sweeper = asyncio.get_running_loop().create_task(self._sweep_lost())

    async def _stop_scan(self) -> None:
        if self._sweeper is not None:
            self._sweeper.cancel()
            self._sweeper = None
        if self._scanner is not None:
            scanner, self._scanner = self._scanner, None
            await scanner.stop()

    async def _sweep_lost(self) -> None:
        interval = min(1.0, self.lost_timeout_s / 2)
        while True:
            await asyncio.sleep(interval)
            cutoff = time.monotonic() - self.lost_timeout_s
            for address, last_seen in list(self._last_seen.items()):
                if last_seen < cutoff and not self._is_connected(address):
                    del self._last_seen[address]
                    self._publish(DeviceLost(address))

    async def _shutdown(self) -> None:
        await self._stop_scan()
        with self._lock:
            peripherals = list(self._peripherals.values())
        for peripheral in peripherals:
            await peripheral._shutdown()
