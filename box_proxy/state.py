"""
box_proxy.state: the registry-owned persistent record and its storage layout.

Design goals
------------
- Fixed layout: a component declares an ordered tuple of named, fixed-width
  unsigned slots. Upgrades may append slots but never drop, reorder or resize
  existing ones.
- Owned by the registry: components receive a PersistentState and operate on
  it; they never hold state of their own.
- Pluggable: a tiny backend interface so a host can swap in a real state DB.

Each slot is stored as a big-endian unsigned integer under ``b"box:" + name``.
A slot that was never written reads as 0.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, Mapping, Optional, Protocol, Tuple, runtime_checkable

from .errors import IncompatibleLayout, ValueOutOfRange

STORED_VALUE = "stored_value"

_KEY_PREFIX = b"box:"


# ---------------------------- Layout ---------------------------- #


@dataclass(frozen=True)
class Slot:
    name: str
    bits: int = 256

    def __post_init__(self) -> None:
        if not self.name or not self.name.isidentifier():
            raise ValueError(f"slot name must be an identifier: {self.name!r}")
        if self.bits <= 0 or self.bits % 8 != 0:
            raise ValueError(f"slot width must be a positive multiple of 8 bits: {self.bits}")

    @property
    def max_value(self) -> int:
        return (1 << self.bits) - 1

    @property
    def key(self) -> bytes:
        return _KEY_PREFIX + self.name.encode("ascii")


@dataclass(frozen=True)
class StorageLayout:
    """Ordered, immutable description of a component's storage slots."""

    slots: Tuple[Slot, ...]

    def __post_init__(self) -> None:
        names = [s.name for s in self.slots]
        if len(set(names)) != len(names):
            raise ValueError(f"duplicate slot names in layout: {names}")

    @classmethod
    def of(cls, *slots: Slot) -> "StorageLayout":
        return cls(tuple(slots))

    def __iter__(self) -> Iterator[Slot]:
        return iter(self.slots)

    def __len__(self) -> int:
        return len(self.slots)

    def slot(self, name: str) -> Slot:
        for s in self.slots:
            if s.name == name:
                return s
        raise KeyError(name)

    def is_compatible_upgrade(self, target: "StorageLayout") -> bool:
        """True when `target` keeps every slot of this layout as its prefix."""
        if len(target.slots) < len(self.slots):
            return False
        return target.slots[: len(self.slots)] == self.slots

    def describe(self) -> str:
        return ",".join(f"{s.name}:u{s.bits}" for s in self.slots)

    def to_list(self) -> list:
        return [{"name": s.name, "bits": s.bits} for s in self.slots]

    @classmethod
    def from_list(cls, items: Iterable[Mapping[str, object]]) -> "StorageLayout":
        return cls(tuple(Slot(str(i["name"]), int(i["bits"])) for i in items))  # type: ignore[arg-type]


def box_layout(bits: int = 256) -> StorageLayout:
    """The single-slot layout shared by every box version."""
    return StorageLayout.of(Slot(STORED_VALUE, bits))


# ---------------------------- Backend API ---------------------------- #


@runtime_checkable
class StorageBackend(Protocol):
    """Minimal backend interface for registry storage."""

    def get(self, key: bytes) -> Optional[bytes]: ...
    def set(self, key: bytes, value: bytes) -> None: ...
    def delete(self, key: bytes) -> None: ...
    def exists(self, key: bytes) -> bool: ...


class MemoryBackend:
    """Thread-safe in-memory backend for local runs and tests."""

    def __init__(self) -> None:
        self._store: Dict[bytes, bytes] = {}
        self._lock = threading.RLock()

    def get(self, key: bytes) -> Optional[bytes]:
        with self._lock:
            return self._store.get(key)

    def set(self, key: bytes, value: bytes) -> None:
        with self._lock:
            self._store[key] = value

    def delete(self, key: bytes) -> None:
        with self._lock:
            self._store.pop(key, None)

    def exists(self, key: bytes) -> bool:
        with self._lock:
            return key in self._store


# ---------------------------- Persistent state ---------------------------- #


def _encode_uint(value: int) -> bytes:
    # Minimal bytes representation (zero -> b"\x00")
    if value == 0:
        return b"\x00"
    return value.to_bytes((value.bit_length() + 7) // 8, "big")


class PersistentState:
    """
    Slot-addressed unsigned integers over a StorageBackend.

    The layout only ever grows by appending (see `extend_layout`); values in
    existing slots are never rewritten by a layout change.
    """

    def __init__(self, layout: StorageLayout, backend: Optional[StorageBackend] = None) -> None:
        if not isinstance(layout, StorageLayout) or len(layout) == 0:
            raise ValueError("persistent state needs a non-empty StorageLayout")
        self._layout = layout
        self._backend: StorageBackend = backend if backend is not None else MemoryBackend()

    @property
    def layout(self) -> StorageLayout:
        return self._layout

    def get(self, name: str) -> int:
        slot = self._layout.slot(name)
        raw = self._backend.get(slot.key)
        if not raw:
            return 0
        return int.from_bytes(raw, "big", signed=False)

    def check(self, name: str, value: int) -> None:
        """Raise ValueOutOfRange unless `value` fits the named slot."""
        slot = self._layout.slot(name)
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueOutOfRange(value, bits=slot.bits)
        if value < 0 or value > slot.max_value:
            raise ValueOutOfRange(value, bits=slot.bits)

    def set(self, name: str, value: int) -> int:
        """Store `value` in slot `name`; returns the previous value."""
        self.check(name, value)
        previous = self.get(name)
        self._backend.set(self._layout.slot(name).key, _encode_uint(value))
        return previous

    @property
    def stored_value(self) -> int:
        return self.get(STORED_VALUE)

    def extend_layout(self, target: StorageLayout) -> None:
        """Adopt `target` if it keeps the current layout as a prefix."""
        if not self._layout.is_compatible_upgrade(target):
            raise IncompatibleLayout(
                "target layout does not preserve existing slots",
                details={"current": self._layout.describe(), "target": target.describe()},
            )
        self._layout = target

    def dump(self) -> Dict[str, int]:
        return {s.name: self.get(s.name) for s in self._layout}

    @classmethod
    def load(
        cls,
        layout: StorageLayout,
        values: Mapping[str, int],
        backend: Optional[StorageBackend] = None,
    ) -> "PersistentState":
        state = cls(layout, backend)
        for name, value in values.items():
            state.set(name, int(value))
        return state


__all__ = [
    "STORED_VALUE",
    "Slot",
    "StorageLayout",
    "box_layout",
    "StorageBackend",
    "MemoryBackend",
    "PersistentState",
]
