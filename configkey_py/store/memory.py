"""In-memory ordered engine implementation."""

import bisect
from typing import Dict, List, Optional, Tuple

from .base import OpKind, Transaction


class MemoryCursor:
    """Cursor over a frozen, sorted copy of one namespace."""

    def __init__(self, items: List[Tuple[str, bytes]]) -> None:
        self._items = items
        self._keys = [k for k, _ in items]
        self._pos = 0

    def seek(self, key: str) -> None:
        self._pos = bisect.bisect_left(self._keys, key)

    def valid(self) -> bool:
        return self._pos < len(self._items)

    def key(self) -> str:
        return self._items[self._pos][0]

    def value(self) -> bytes:
        return self._items[self._pos][1]

    def advance(self) -> None:
        self._pos += 1


class MemoryEngine:
    """In-memory engine with namespaces, version counter and atomic batches."""

    def __init__(self) -> None:
        self._data: Dict[str, Dict[str, bytes]] = {}
        self._version: int = 0

    def get(self, namespace: str, key: str) -> Optional[bytes]:
        return self._data.get(namespace, {}).get(key)

    def exists(self, namespace: str, key: str) -> bool:
        return key in self._data.get(namespace, {})

    def cursor(self, namespace: str) -> MemoryCursor:
        """Snapshot the namespace in key order."""
        return MemoryCursor(sorted(self._data.get(namespace, {}).items()))

    def apply(self, transaction: Transaction) -> None:
        """Apply all staged operations of a transaction atomically."""
        ops = transaction.mark_committed()
        if not ops:
            return

        # Apply all writes in order
        for op in ops:
            bucket = self._data.setdefault(op.namespace, {})
            if op.kind is OpKind.ERASE:
                bucket.pop(op.key, None)
            else:
                bucket[op.key] = op.value

        self._version += 1

    @property
    def version(self) -> int:
        """Number of non-empty transactions applied."""
        return self._version

    def __len__(self) -> int:
        return sum(len(bucket) for bucket in self._data.values())

    def close(self) -> None:
        pass
