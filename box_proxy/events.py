from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Tuple

log = logging.getLogger(__name__)

INITIALIZED = "Initialized"
VALUE_UPDATED = "ValueUpdated"
UPGRADED = "Upgraded"
OWNERSHIP_TRANSFERRED = "OwnershipTransferred"

MAX_EVENT_NAME_LEN = 64
MAX_KEY_LEN = 64
MAX_BYTES_LEN = 4096
MAX_INT_BITS = 256

# Keys must be identifier-like: letters/underscore, then letters/digits/underscore.
_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


@dataclass(frozen=True)
class Event:
    """One ordered notification emitted by a registry."""

    seq: int
    name: str
    args: Mapping[str, Any]

    def to_receipt(self) -> Dict[str, Any]:
        """
        Canonical form for logs and JSON output: bytes become 0x-prefixed hex,
        ints and strings pass through.
        """
        out: Dict[str, Any] = {}
        for k, v in self.args.items():
            out[k] = "0x" + bytes(v).hex() if isinstance(v, (bytes, bytearray)) else v
        return {"seq": self.seq, "name": self.name, "args": out}


class EventLog:
    """Append-only, per-registry event log; mirrors each event to logging."""

    def __init__(self, events: Tuple[Event, ...] = ()) -> None:
        self._events: List[Event] = list(events)
        self._lock = threading.Lock()

    # --- Validation helpers -------------------------------------------------

    @staticmethod
    def _check_name(name: Any) -> str:
        if not isinstance(name, str) or not name:
            raise ValueError("event name must be a non-empty str")
        if len(name) > MAX_EVENT_NAME_LEN:
            raise ValueError(f"event name too long: {len(name)}")
        return name

    @staticmethod
    def _check_key(key: Any) -> str:
        if not isinstance(key, str) or len(key) > MAX_KEY_LEN or not _KEY_RE.match(key):
            raise ValueError(f"invalid event key: {key!r}")
        return key

    @staticmethod
    def _check_value(value: Any) -> Any:
        if isinstance(value, (bytes, bytearray)):
            if len(value) > MAX_BYTES_LEN:
                raise ValueError("event bytes arg too long")
            return bytes(value)
        if isinstance(value, bool):
            # bool is a subclass of int, so check it before int.
            return value
        if isinstance(value, int):
            if value.bit_length() > MAX_INT_BITS:
                raise ValueError("event int arg out of range")
            return value
        if isinstance(value, str):
            return value
        raise ValueError(f"unsupported event arg type: {type(value).__name__}")

    # --- Core operations ----------------------------------------------------

    def emit(self, name: str, args: Mapping[str, Any]) -> Event:
        name = self._check_name(name)
        checked = {self._check_key(k): self._check_value(v) for k, v in args.items()}
        with self._lock:
            ev = Event(seq=len(self._events), name=name, args=checked)
            self._events.append(ev)
        log.info("%s %s", ev.name, ev.to_receipt()["args"])
        return ev

    def all(self) -> List[Event]:
        with self._lock:
            return list(self._events)

    def since(self, seq: int) -> List[Event]:
        """Events with `seq` greater than or equal to the given value."""
        with self._lock:
            return [e for e in self._events if e.seq >= seq]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def to_receipts(self) -> List[Dict[str, Any]]:
        return [e.to_receipt() for e in self.all()]

    @classmethod
    def from_receipts(cls, items: List[Mapping[str, Any]]) -> "EventLog":
        """Rebuild a log from `to_receipts` output (str/int args only)."""
        events = tuple(
            Event(seq=int(i["seq"]), name=str(i["name"]), args=dict(i.get("args") or {}))
            for i in items
        )
        return cls(events)


__all__ = [
    "Event",
    "EventLog",
    "INITIALIZED",
    "VALUE_UPDATED",
    "UPGRADED",
    "OWNERSHIP_TRANSFERRED",
]
