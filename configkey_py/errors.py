"""Custom error types for configkey-py.

Every error carries a POSIX-style negative ``code`` that is surfaced to the
client as the reply status.
"""

import errno
import os


def strerror(code: int) -> str:
    """Render an errno the way command status strings expect: ``(2) No such file or directory``."""
    code = abs(code)
    return f"({code}) {os.strerror(code)}"


class ConfigKeyError(Exception):
    """Base error for all config-key errors."""

    code: int = -errno.EIO

    def __init__(self, message: str, code: int = None):
        if code is not None:
            self.code = code
        self.message = message
        super().__init__(message)


class CommandParseError(ConfigKeyError):
    """Raised when a command cannot be decoded into a command map."""

    code = -errno.EINVAL


class CommandValidationError(ConfigKeyError):
    """Raised when a command field has the wrong shape."""

    code = -errno.EINVAL


class EntryTooLargeError(CommandValidationError):
    """Raised when a put value exceeds the configured maximum entry size."""

    code = -errno.EFBIG

    def __init__(self, max_entry_size: int):
        self.max_entry_size = max_entry_size
        super().__init__(
            f"error: entry size limited to {max_entry_size} bytes. "
            "Use 'mon config key max entry size' to manually adjust"
        )


class KeyNotFoundError(ConfigKeyError):
    """Raised when a key is missing from the store."""

    code = -errno.ENOENT

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"error obtaining '{key}': {strerror(self.code)}")


class SecretConflictError(ConfigKeyError):
    """Raised when a device already has a different dm-crypt secret bound."""

    code = -errno.EEXIST


class StoreUnavailableError(ConfigKeyError):
    """Raised when the backing key-value engine fails an I/O operation."""

    code = -errno.EIO
