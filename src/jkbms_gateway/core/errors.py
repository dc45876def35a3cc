"""Error taxonomy for the JK BMS gateway."""


class BmsError(Exception):
    """Base class for all gateway errors."""


class TransportError(BmsError):
    """Connect failure or mid-session disconnect."""


class DecodeError(BmsError):
    """Frame payload could not be decoded.

    Raised by codecs and always handled by the dispatcher; the offending
    frame is dropped and the stream continues.
    """


class RequestTimeout(BmsError, TimeoutError):
    """No record of the requested type arrived before the deadline."""


class NoDeviceConfigured(BmsError):
    """No device identity is configured; refresh is skipped."""


class RetryExhausted(BmsError):
    """Every attempt of a refresh cycle failed."""

    def __init__(self, attempts: int, last_error: BaseException | None = None):
        self.attempts = attempts
        self.last_error = last_error
        detail = f": {last_error}" if last_error is not None else ""
        super().__init__(f"Refresh failed after {attempts} attempt(s){detail}")


class DeviceBusy(BmsError):
    """The device link is held by another session."""
