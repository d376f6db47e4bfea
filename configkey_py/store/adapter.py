"""Key-value operations over the config-key namespace.

All scan-based operations go through the engine's ordered cursor, so any
engine implementing :class:`~configkey_py.store.base.Cursor` works here.

Prefix matching is a literal leading-substring test: ``"abcX"`` matches the
prefix ``"abc"``. Callers such as the device lifecycle hooks rely on this.
"""

import errno
import logging
from contextlib import contextmanager
from typing import Iterator, Tuple

from .base import KVEngine, Transaction, iter_cursor
from ..config import DEFAULT_NAMESPACE
from ..errors import KeyNotFoundError, StoreUnavailableError


logger = logging.getLogger(__name__)


def is_binary(value: bytes) -> bool:
    """True if the value holds a byte outside printable ASCII, ``\\n`` and ``\\t`` aside.

    ``\\n`` and ``\\t`` are escaped by JSON; other control bytes are not.
    """
    for c in value:
        if (c < 0x20 and c not in (0x0a, 0x09)) or c >= 0x7f:
            return True
    return False


def render_value(value: bytes) -> str:
    """Render a value for structured output, redacting binary blobs."""
    if is_binary(value):
        return f"<<< binary blob of length {len(value)} >>>"
    return value.decode("ascii")


@contextmanager
def engine_errors(operation: str) -> Iterator[None]:
    """Turn an engine ``OSError`` into :class:`StoreUnavailableError`, keeping its errno."""
    try:
        yield
    except OSError as e:
        raise StoreUnavailableError(f"{operation} failed: {e}", code=-(e.errno or errno.EIO)) from e


class StoreAdapter:
    """Point and prefix operations over a single engine namespace."""

    def __init__(self, engine: KVEngine, namespace: str = DEFAULT_NAMESPACE) -> None:
        self.engine = engine
        self.namespace = namespace

    def get(self, key: str) -> bytes:
        """Return the value for ``key``.

        Raises:
            KeyNotFoundError: if the key is absent
            StoreUnavailableError: if the engine fails
        """
        with engine_errors(f"get '{key}'"):
            value = self.engine.get(self.namespace, key)
        if value is None:
            raise KeyNotFoundError(key)
        return value

    def put(self, transaction: Transaction, key: str, value: bytes) -> None:
        """Stage a put into ``transaction``; nothing is committed here."""
        transaction.put(self.namespace, key, value)

    def delete(self, transaction: Transaction, key: str) -> None:
        """Stage an erase into ``transaction``."""
        transaction.erase(self.namespace, key)

    def exists(self, key: str) -> bool:
        with engine_errors(f"exists '{key}'"):
            return self.engine.exists(self.namespace, key)

    def has_prefix(self, prefix: str) -> bool:
        """True if any stored key starts with ``prefix``.

        Full forward scan from the start of the namespace.
        """
        with engine_errors(f"scan for prefix '{prefix}'"):
            cursor = self.engine.cursor(self.namespace)
            while cursor.valid():
                if cursor.key().startswith(prefix):
                    return True
                cursor.advance()
        return False

    def list_keys(self) -> Iterator[str]:
        """Yield every key in order from one cursor snapshot."""
        with engine_errors("list"):
            cursor = self.engine.cursor(self.namespace)
            while cursor.valid():
                yield cursor.key()
                cursor.advance()

    def dump(self, prefix: str = "") -> Iterator[Tuple[str, str]]:
        """Yield (key, rendered value) for keys starting with ``prefix``.

        Seeks to ``prefix`` and stops at the first key that does not match.
        """
        logger.debug("dump prefix '%s'", prefix)
        with engine_errors(f"dump '{prefix}'"):
            cursor = self.engine.cursor(self.namespace)
            if prefix:
                cursor.seek(prefix)

            for key, value in iter_cursor(cursor):
                if prefix and not key.startswith(prefix):
                    break
                yield key, render_value(value)

    def delete_prefix(self, transaction: Transaction, prefix: str) -> int:
        """Stage an erase for every key starting with ``prefix``.

        Keys put into the prefix after the scan's snapshot are not included.
        The caller triggers the commit. Returns the number of erases staged.
        """
        staged = 0
        with engine_errors(f"scan for prefix '{prefix}'"):
            cursor = self.engine.cursor(self.namespace)
            while cursor.valid():
                key = cursor.key()
                if key.startswith(prefix):
                    self.delete(transaction, key)
                    staged += 1
                cursor.advance()
        return staged
