"""Owner of named binary weight blobs with typed, read-only access."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Optional


class BufferDtype(Enum):
    """Element type recorded alongside a stored weight blob."""

    F16 = "f16"
    BF16 = "bf16"
    F32 = "f32"
    F64 = "f64"
    I8 = "i8"
    I32 = "i32"
    I64 = "i64"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class WeightDescriptor:
    """Size and type information of one stored blob."""

    num_elements: int = 0
    byte_width: int = 0
    dtype: BufferDtype = BufferDtype.UNKNOWN

    def total_bytes(self) -> int:
        return self.num_elements * self.byte_width


@dataclass(frozen=True)
class _Entry:
    blob: bytes
    fmt: str
    desc: WeightDescriptor


def _typed_view(entry: _Entry) -> memoryview:
    view = memoryview(entry.blob)
    try:
        return view.cast(entry.fmt)
    except (TypeError, ValueError):
        return view


class WeightBuffer:
    """Stores copies of weight data under unique names; existing names are never overwritten."""

    def __init__(self) -> None:
        self._storage: dict[str, _Entry] = {}

    def __len__(self) -> int:
        return len(self._storage)

    def __contains__(self, name: object) -> bool:
        return name in self._storage

    def __iter__(self) -> Iterator[str]:
        return iter(tuple(self._storage))

    def add(self, name: str, data, dtype: BufferDtype = BufferDtype.UNKNOWN) -> memoryview:
        """Copy ``data`` (any buffer-protocol object) in under ``name``.

        If ``name`` is already present, the stored data is returned unchanged.
        """
        existing = self._storage.get(name)
        if existing is not None:
            return _typed_view(existing)

        with memoryview(data) as view:
            itemsize = view.itemsize
            fmt = view.format.lstrip("@") or "B"
            blob = view.tobytes()
            count = view.nbytes // itemsize if itemsize else 0

        entry = _Entry(blob, fmt, WeightDescriptor(count, itemsize, dtype))
        self._storage[name] = entry
        return _typed_view(entry)

    def get(self, name: str) -> Optional[memoryview]:
        """Typed read-only view of the blob, or ``None`` if absent."""
        entry = self._storage.get(name)
        return None if entry is None else _typed_view(entry)

    def raw_bytes(self, name: str) -> Optional[bytes]:
        """The blob's raw bytes, or ``None`` if absent."""
        entry = self._storage.get(name)
        return None if entry is None else entry.blob

    def descriptor(self, name: str) -> Optional[WeightDescriptor]:
        """Descriptor of the blob, or ``None`` if absent."""
        entry = self._storage.get(name)
        return None if entry is None else entry.desc

    def remove(self, name: str) -> None:
        """Drop the blob named ``name``; absent names are ignored."""
        self._storage.pop(name, None)