"""Interactive AT console over a connected serial-profile peripheral.

The session thread multiplexes four sources with :func:`select`: radio
events, cancellation, device notifications and user commands. User input is
read on its own thread and handed over through a one-slot rendezvous: the
prompt thread publishes a command, then blocks until the session sends a
go-ahead after the command has been fully written. At most one command is
therefore ever in flight, and every write happens on the session thread.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable

from hmremote.core.address import same_address
from hmremote.core.channels import Channel, ChannelClosed, select
from hmremote.core.config import TRANSPORT_UNIT
from hmremote.core.errors import AdapterStoppedError, HMRemoteError, TerminalIOError, UnknownError
from hmremote.core.model import (
    Characteristic,
    DeviceDisconnected,
    DeviceLost,
    RadioEvent,
    SessionEnd,
)
from hmremote.transports.base import Peripheral

LOGGER = logging.getLogger(__name__)

QUIT_COMMAND = "quit"
INVALID_COMMAND_MESSAGE = "Invalid Input, can only be AT command or quit"
DEFAULT_WRITE_DELAY_S = 0.01


class InvalidCommandError(ValueError):
    """Raised by :func:`validate_command` for input the console will not send."""


def validate_command(value: str) -> str:
    if not value.startswith("AT") and value != QUIT_COMMAND:
        raise InvalidCommandError(INVALID_COMMAND_MESSAGE)
    return value


def chunk_payload(data: bytes, size: int = TRANSPORT_UNIT) -> list[bytes]:
    """Split ``data`` into consecutive frames of at most ``size`` bytes."""
    if size <= 0:
        raise ValueError(f"size must be > 0, got {size}")
    return [data[i : i + size] for i in range(0, len(data), size)]


def decode_notification(payload: bytes) -> str | None:
    """Render a notification payload; ``None`` means there is nothing to print."""
    if not payload:
        return None
    try:
        return payload.decode("utf-8")
    except UnicodeDecodeError:
        return f"Failed to decode message: {payload.hex(' ')}"


class PromptSource:
    """Reads one command at a time on a dedicated thread.

    ``read_line`` is expected to do its own validation and re-prompting; any
    exception it raises is published as a :class:`TerminalIOError` and ends
    the thread.
    """

    def __init__(self, read_line: Callable[[], str]) -> None:
        self.commands: Channel[str | HMRemoteError] = Channel("commands")
        self.go_ahead: Channel[None] = Channel("go-ahead")
        self._read_line = read_line
        self._thread = threading.Thread(target=self._run, name="prompt", daemon=True)

    def start(self) -> PromptSource:
        self._thread.start()
        return self

    def close(self) -> None:
        self.commands.close()
        self.go_ahead.close()

    def join(self, timeout: float | None = None) -> None:
        self._thread.join(timeout)

    def _run(self) -> None:
        while True:
            try:
                command = self._read_line()
            except Exception as exc:
                LOGGER.debug("Prompt input failed: %r", exc)
                try:
                    self.commands.send(TerminalIOError(f"Terminal I/O error: {str(exc) or type(exc).__name__}"))
                except ChannelClosed:
                    LOGGER.debug("Session already ended; prompt error discarded")
                return
            try:
                self.commands.send(command)
                self.go_ahead.recv()
            except ChannelClosed:
                return


class ConsoleSession:
    def __init__(
        self,
        device: Peripheral,
        characteristic: Characteristic,
        *,
        events: Channel[RadioEvent],
        cancel: Channel[None],
        read_line: Callable[[], str],
        echo: Callable[[str], None] = print,
        write_delay_s: float = DEFAULT_WRITE_DELAY_S,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.device = device
        self.characteristic = characteristic
        self.events = events
        self.cancel = cancel
        self._read_line = read_line
        self._echo = echo
        self.write_delay_s = write_delay_s
        self._sleep = sleep

    def run(self) -> SessionEnd:
        """Drive the console until a terminal condition; returns why it ended."""
        notifications: Channel[bytes] = Channel("notifications")

        def _on_notification(payload: bytes) -> None:
            try:
                notifications.send(payload)
            except ChannelClosed:
                LOGGER.debug("Dropping %d-byte notification after session end", len(payload))

        self.device.subscribe(self.characteristic, _on_notification)
        prompt = PromptSource(self._read_line).start()
        try:
            return self._loop(notifications, prompt)
        finally:
            prompt.close()
            notifications.close()

    def _loop(self, notifications: Channel[bytes], prompt: PromptSource) -> SessionEnd:
        sources = [self.events, self.cancel, notifications, prompt.commands]
        while True:
            try:
                source, item = select(sources)
            except ChannelClosed as exc:
                if exc.channel is self.events:
                    raise AdapterStoppedError() from None
                raise UnknownError(f"Console source '{exc.channel.name}' stopped unexpectedly") from None

            if source is self.events:
                reason = self._on_radio_event(item)
                if reason is not None:
                    return reason
            elif source is self.cancel:
                LOGGER.debug("Session cancelled; disconnecting %s", self.device.address)
                self.device.disconnect()
                return SessionEnd.CANCELLED
            elif source is notifications:
                text = decode_notification(item)
                if text is not None:
                    self._echo(text)
            else:
                if isinstance(item, HMRemoteError):
                    raise item
                if item == QUIT_COMMAND:
                    self.device.disconnect()
                    return SessionEnd.USER_QUIT
                self.send_command(item)
                prompt.go_ahead.send(None)

    def send_command(self, command: str) -> None:
        """Write ``command`` frame by frame, then give the device time to process it."""
        frames = chunk_payload(command.encode("utf-8"))
        for frame in frames:
            self.device.write(self.characteristic, frame)
        LOGGER.debug("Sent %r in %d frame(s)", command, len(frames))
        self._sleep(self.write_delay_s)

    def _on_radio_event(self, event: RadioEvent) -> SessionEnd | None:
        if not same_address(event.address, self.device.address):
            return None
        if isinstance(event, DeviceLost):
            self._echo("Device disconnected!")
            return SessionEnd.DEVICE_LOST
        if isinstance(event, DeviceDisconnected):
            self._echo("Device disconnected!")
            return SessionEnd.DEVICE_DISCONNECTED
        return None
