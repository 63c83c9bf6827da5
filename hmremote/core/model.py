"""Core data models used across scanning, session, and CLI."""

from __future__ import annotations

import enum
from dataclasses import dataclass

UNNAMED = "<Unnamed>"


class DeviceStatus(enum.Enum):
    DISCOVERED = "discovered"
    UPDATED = "updated"


@dataclass
class DeviceRecord:
    address: str
    name: str | None = None
    status: DeviceStatus = DeviceStatus.DISCOVERED

    def promote(self) -> None:
        # Discovered -> Updated only; never back.
        self.status = DeviceStatus.UPDATED


@dataclass(frozen=True)
class DeviceProperties:
    address: str
    local_name: str | None = None

    @property
    def display(self) -> str:
        return f"{self.address} {self.local_name or UNNAMED}"


@dataclass(frozen=True)
class Characteristic:
    uuid: str
    properties: tuple[str, ...] = ()


# Raw radio events, as produced by a Radio backend.


@dataclass(frozen=True)
class DeviceDiscovered:
    address: str


@dataclass(frozen=True)
class DeviceUpdated:
    address: str


@dataclass(frozen=True)
class DeviceLost:
    address: str


@dataclass(frozen=True)
class DeviceDisconnected:
    address: str


RadioEvent = DeviceDiscovered | DeviceUpdated | DeviceLost | DeviceDisconnected


# Classified scan events, consumed by the presentation layer.


@dataclass(frozen=True)
class Advertised:
    address: str


@dataclass(frozen=True)
class Lost:
    address: str
    display: str


@dataclass(frozen=True)
class Seen:
    address: str
    display: str


@dataclass(frozen=True)
class NewlyDiscovered:
    address: str
    display: str


ClassifiedEvent = Advertised | Lost | Seen | NewlyDiscovered


class SessionEnd(enum.Enum):
    DEVICE_LOST = "device-lost"
    DEVICE_DISCONNECTED = "device-disconnected"
    USER_QUIT = "user-quit"
    CANCELLED = "cancellation"
