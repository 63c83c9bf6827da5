"""Connection establishment and serial characteristic verification."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

from hmremote.core.config import RetrySettings
from hmremote.core.errors import ConnectRetryExhaustedError, NotConnectedError, NotHMDeviceError
from hmremote.core.model import Characteristic
from hmremote.transports.base import Peripheral

LOGGER = logging.getLogger(__name__)


class ConnectionManager:
    """Connects a peripheral and checks it speaks the serial profile.

    Only :class:`NotConnectedError` is retried. With the default retry
    settings the retry loop is unbounded and does not sleep.
    """

    def __init__(
        self,
        characteristic_uuid: str,
        *,
        retry: RetrySettings | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.characteristic_uuid = characteristic_uuid.lower()
        self.retry = retry or RetrySettings()
        self._sleep = sleep

    def connect(self, device: Peripheral, cancelled: Callable[[], bool] | None = None) -> bool:
        """Connect ``device``, retrying transient failures.

        ``cancelled`` is polled before every attempt. Returns ``False`` if it
        fired before the device connected.
        """
        attempt = 0
        while not device.is_connected():
            if cancelled is not None and cancelled():
                LOGGER.debug("Connect to %s cancelled after %d attempt(s)", device.address, attempt)
                return False
            try:
                device.connect()
            except NotConnectedError as exc:
                attempt += 1
                if self.retry.max_attempts and attempt >= self.retry.max_attempts:
                    raise ConnectRetryExhaustedError(
                        f"Could not connect to {device.address} after {attempt} attempt(s): {exc}"
                    ) from exc
                delay = self.retry.delay_for(attempt)
                LOGGER.debug(
                    "Connect attempt %d to %s not connected yet; retrying in %.3fs",
                    attempt,
                    device.address,
                    delay,
                )
                if delay > 0:
                    self._sleep(delay)
        return True

    def verify(self, device: Peripheral) -> Characteristic:
        """Return the serial characteristic, or raise if the device lacks it.

        The connection is left open on failure; the caller decides what to do.
        """
        for characteristic in device.discover_characteristics():
            if characteristic.uuid.lower() == self.characteristic_uuid:
                return characteristic
        raise NotHMDeviceError()
