"""Domain-specific errors for hm-remote."""


class HMRemoteError(Exception):
    """Base error for hm-remote."""


class BluetoothError(HMRemoteError):
    """Raised when the Bluetooth stack reports a failure."""


class NotConnectedError(BluetoothError):
    """Raised while a peripheral is not (yet) connected.

    Connection retry treats this as transient; everywhere else it is fatal.
    """


class NoAdapterError(BluetoothError):
    """Raised when no usable Bluetooth adapter can be found."""

    def __init__(self, message: str = "Cannot find bluetooth adapter") -> None:
        super().__init__(message)


class AdapterStoppedError(BluetoothError):
    """Raised when the adapter event stream ends before the operation does."""

    def __init__(self, message: str = "Bluetooth adapter unexpectedly stopped") -> None:
        super().__init__(message)


class ConnectRetryExhaustedError(BluetoothError):
    """Raised when a bounded connect retry policy runs out of attempts."""


class InvalidAddressError(HMRemoteError):
    """Raised when a hardware address string cannot be parsed."""


class SignalRegistrationError(HMRemoteError):
    """Raised when the interrupt handler cannot be installed."""


class TerminalIOError(HMRemoteError):
    """Raised when interactive terminal input fails."""


class NotHMDeviceError(HMRemoteError):
    """Raised when a connected device lacks the serial characteristic."""

    def __init__(self, message: str = "Device is not a HM device") -> None:
        super().__init__(message)


class ConfigError(HMRemoteError):
    """Raised when the configuration file is unreadable or invalid."""


class UnknownError(HMRemoteError):
    """Last-resort error for conditions that should not happen."""

    def __init__(self, message: str = "Unknown error") -> None:
        super().__init__(message)
