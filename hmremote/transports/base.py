"""Radio capability interfaces.

The core only talks to the Bluetooth stack through these protocols; the
concrete backend is picked once at startup.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Protocol

from hmremote.core.model import Characteristic, DeviceProperties, RadioEvent


class Peripheral(Protocol):
    address: str

    def properties(self) -> DeviceProperties:
        """Latest known advertised properties."""

    def is_connected(self) -> bool: ...

    def connect(self) -> None:
        """Connect once; raises NotConnectedError when the attempt did not stick."""

    def disconnect(self) -> None: ...

    def discover_characteristics(self) -> list[Characteristic]: ...

    def subscribe(self, characteristic: Characteristic, on_notification: Callable[[bytes], None]) -> None:
        """Enable notifications; ``on_notification`` may be called from any thread."""

    def write(self, characteristic: Characteristic, data: bytes) -> None: ...


class Radio(Protocol):
    def start_scan(self) -> None: ...

    def stop_scan(self) -> None: ...

    def events(self) -> Iterator[RadioEvent]:
        """Blocking, single-consumer event stream; ends when the adapter stops."""

    def peripheral(self, address: str) -> Peripheral: ...

    def close(self) -> None: ...
