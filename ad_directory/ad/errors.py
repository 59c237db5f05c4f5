"""Exceptions raised by the directory client and the OU traversal."""

from __future__ import annotations


class DirectoryError(Exception):
    """Base class for all directory access errors."""


class InvalidConfigurationError(DirectoryError, ValueError):
    """Domain or service-account settings are missing or blank."""


class DirectoryUnreachableError(DirectoryError):
    """Connection, StartTLS or service bind failed."""


class DirectoryOperationError(DirectoryError):
    """A remote search returned a non-success result."""

    def __init__(self, message: str, path: str = "", result: dict | None = None) -> None:
        super().__init__(message)
        self.path = path
        self.result = dict(result or {})


class MalformedEntryError(DirectoryError):
    """A directory entry has no usable naming component."""


class DirectoryTimeoutError(DirectoryError):
    """The traversal deadline expired before the tree was complete."""
