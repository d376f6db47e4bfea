"""Base engine protocols, write operations and transactions."""

from typing import Protocol, Optional, List, Iterator
from dataclasses import dataclass
from enum import Enum


class OpKind(Enum):
    """Kind of a staged write operation."""
    PUT = "put"
    ERASE = "erase"


@dataclass(frozen=True)
class WriteOp:
    """Staged write operation inside a transaction."""
    kind: OpKind
    namespace: str
    key: str
    value: Optional[bytes] = None


class Transaction:
    """Append-only batch of put/erase operations.

    Owned by the consensus layer. Callers only append to it; the batch is
    applied to the engine as a unit when the consensus layer commits it.
    """

    def __init__(self):
        self._ops: List[WriteOp] = []
        self.is_committed = False

    def _append(self, op: WriteOp) -> None:
        if self.is_committed:
            raise RuntimeError("Cannot add operations to committed transaction")
        self._ops.append(op)

    def put(self, namespace: str, key: str, value: bytes) -> None:
        """Stage a put."""
        self._append(WriteOp(OpKind.PUT, namespace, key, bytes(value)))

    def erase(self, namespace: str, key: str) -> None:
        """Stage an erase."""
        self._append(WriteOp(OpKind.ERASE, namespace, key))

    def mark_committed(self) -> List[WriteOp]:
        """Return all staged operations and seal the transaction."""
        if self.is_committed:
            raise RuntimeError("Transaction already committed")
        self.is_committed = True
        return list(self._ops)

    @property
    def ops(self) -> List[WriteOp]:
        return list(self._ops)

    def empty(self) -> bool:
        return not self._ops

    def __len__(self) -> int:
        return len(self._ops)


class Cursor(Protocol):
    """Ordered cursor over one namespace of an engine.

    A cursor reflects a single snapshot taken when it was created.
    """

    def seek(self, key: str) -> None:
        """Position at the first key >= ``key``."""
        ...

    def valid(self) -> bool:
        ...

    def key(self) -> str:
        ...

    def value(self) -> bytes:
        ...

    def advance(self) -> None:
        ...


class KVEngine(Protocol):
    """Protocol for ordered key-value engines."""

    def get(self, namespace: str, key: str) -> Optional[bytes]:
        """Get value for key. Returns None if not found."""
        ...

    def exists(self, namespace: str, key: str) -> bool:
        ...

    def cursor(self, namespace: str) -> Cursor:
        """Return a cursor positioned at the first key of ``namespace``."""
        ...

    def apply(self, transaction: Transaction) -> None:
        """Apply all staged operations of a transaction atomically."""
        ...


def iter_cursor(cursor: Cursor) -> Iterator[tuple]:
    """Yield (key, value) pairs from the cursor's current position to the end."""
    while cursor.valid():
        yield cursor.key(), cursor.value()
        cursor.advance()
