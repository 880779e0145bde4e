"""Exceptions raised by the Safari data readers."""


class SafariDataError(Exception):
    """Base class for all errors raised by this package."""


class SourceUnavailable(SafariDataError, OSError):
    """A data file is missing or cannot be read."""


class DecodeError(SafariDataError, ValueError):
    """A property-list document is malformed or has an unexpected shape."""


class DatabaseError(SafariDataError):
    """A Safari SQLite database could not be opened or queried."""


class AutomationError(SafariDataError):
    """An osascript call failed or returned unusable output."""


class AutomationTimeout(AutomationError, TimeoutError):
    """An osascript call did not finish in time."""
