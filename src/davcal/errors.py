"""
Exception types raised by davcal.
"""


class DavcalError(Exception):
    """Base class for all davcal errors."""


class ConfigurationError(DavcalError):
    """Configuration is unreadable, malformed or names no endpoint."""


class TransportError(DavcalError):
    """A request to the CalDAV server failed.

    Raised for network, authentication and protocol failures. Wraps the
    underlying client exception as ``__cause__``.
    """


class RecurrenceError(DavcalError):
    """A recurrence rule could not be built or evaluated for one event."""
