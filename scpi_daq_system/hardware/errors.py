"""
errors.py
PURPOSE: Exception taxonomy for instrument communication
"""


class InstrumentError(Exception):
    """Base class for everything the hardware layer raises."""


class ConnectivityError(InstrumentError):
    """Connect, write or read failed for a reason other than a quiet timeout."""

    def __init__(self, address, cause):
        self.address = address
        self.cause = cause
        super().__init__(f"{address}: {cause}")


class ProtocolDecodeError(InstrumentError):
    """
    The instrument replied, but the reply could not be decoded.

    Attributes:
        raw: Reply text exactly as received (after trimming)
        reason: Human-readable description of what was wrong
        field: Name of the offending field, if a single field failed to parse
    """

    def __init__(self, raw, reason, field=None):
        self.raw = raw
        self.reason = reason
        self.field = field
        super().__init__(f"{reason} (raw={raw!r})")


class EmptyReplyError(ProtocolDecodeError):
    """A command that must be answered produced no reply at all."""

    def __init__(self, command, address=None):
        self.command = command
        self.address = address
        super().__init__("", f"empty reply to {command}")
