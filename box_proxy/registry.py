"""
box_proxy.registry: the stable front of an upgradeable box.

The registry owns a PersistentState and an OwnershipGuard and forwards every
behavior call to the active VersionedComponent, handing it the state. An
upgrade rebinds the active component; it never rebuilds or resets the state.

Serialization
-------------
Every public operation runs under one re-entrant lock per registry. Callers
never observe a half-finished rebind, two upgrades cannot both pass the owner
check against the same pre-upgrade state, and a failing call leaves nothing
mutated.

State machine
-------------
UNINITIALIZED --initialize--> ACTIVE(v1) --upgrade--> ACTIVE(vN) --upgrade--> ...
There is no terminal phase and no way back to UNINITIALIZED.
"""

from __future__ import annotations

import contextlib
import logging
import threading
from enum import Enum
from typing import Any, Dict, Iterator, Mapping, Optional, Union

from . import events as ev
from .access import InitializationFlag, OwnershipGuard, is_null_principal
from .components import PROXIABLE_UUID, WRITE, ComponentCatalog, VersionedComponent, default_catalog
from .config import ProxyConfig, load_config
from .errors import (
    AlreadyInitialized,
    BoxProxyError,
    IncompatibleImplementation,
    InvalidOwner,
    NotInitialized,
    SameImplementation,
    UnsupportedOperation,
)
from .state import STORED_VALUE, PersistentState, StorageBackend, StorageLayout

log = logging.getLogger(__name__)

Target = Union[str, int, VersionedComponent]


class RegistryPhase(str, Enum):
    UNINITIALIZED = "uninitialized"
    ACTIVE = "active"


class ComponentRegistry:
    def __init__(
        self,
        catalog: Optional[ComponentCatalog] = None,
        *,
        config: Optional[ProxyConfig] = None,
        backend: Optional[StorageBackend] = None,
    ) -> None:
        self._config = config or load_config()
        self._catalog = catalog or default_catalog(self._config.value_bits)
        self._initial = self._catalog.resolve(1)
        self._state = PersistentState(self._initial.layout, backend)
        self._guard = OwnershipGuard()
        self._init = InitializationFlag()
        self._active: Optional[VersionedComponent] = None
        self._events = ev.EventLog()
        self._lock = threading.RLock()

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    @property
    def catalog(self) -> ComponentCatalog:
        return self._catalog

    @property
    def state(self) -> PersistentState:
        return self._state

    @property
    def events(self) -> ev.EventLog:
        return self._events

    @property
    def phase(self) -> RegistryPhase:
        with self._lock:
            return RegistryPhase.ACTIVE if self._init else RegistryPhase.UNINITIALIZED

    @property
    def owner(self) -> Optional[str]:
        with self._lock:
            return self._guard.owner

    @property
    def active(self) -> Optional[VersionedComponent]:
        with self._lock:
            return self._active

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    @contextlib.contextmanager
    def _serialized(self, operation: str, caller: Optional[str] = None) -> Iterator[None]:
        with self._lock:
            try:
                yield
            except BoxProxyError as exc:
                log.debug("rejected %s caller=%s: %s", operation, caller, exc)
                raise

    def _require_active(self) -> VersionedComponent:
        if self._active is None:
            raise NotInitialized()
        return self._active

    # ------------------------------------------------------------------ #
    # Operations
    # ------------------------------------------------------------------ #

    def initialize(self, caller: str) -> ev.Event:
        """
        One-time initializer: `caller` becomes owner and the catalog's version 1
        implementation becomes active.

        Raises AlreadyInitialized on any later call, whoever the caller is.
        """
        with self._serialized("initialize", caller):
            if self._init:
                raise AlreadyInitialized()
            if is_null_principal(caller):
                raise InvalidOwner(caller)
            self._guard.init_owner(caller)
            self._active = self._initial
            self._init.mark()
            log.info("initialized owner=%s implementation=%s", caller, self._initial.name)
            return self._events.emit(ev.INITIALIZED, {"caller": caller})

    def read(self) -> int:
        with self._serialized("read"):
            return self._require_active().read(self._state)

    def version_tag(self) -> int:
        with self._serialized("version_tag"):
            return self._require_active().version_tag()

    def write(self, caller: str, new_value: int) -> int:
        """
        Forward a write to the active implementation. No access restriction.

        Returns the previous value. Raises UnsupportedOperation while the
        active implementation is read-only and ValueOutOfRange when the value
        does not fit the slot; the stored value is unchanged in both cases.
        """
        with self._serialized("write", caller):
            active = self._require_active()
            if not active.supports(WRITE):
                raise UnsupportedOperation(WRITE, version=active.version)
            previous = active.write(self._state, new_value)
            self._events.emit(
                ev.VALUE_UPDATED, {"previous": previous, "new": new_value, "caller": caller}
            )
            return previous

    def upgrade(self, caller: str, target: Target) -> ev.Event:
        """
        Owner-only: make `target` the active implementation.

        The target must come from this registry's catalog, report the
        registry's proxiable UUID and keep every existing storage slot.
        """
        with self._serialized("upgrade", caller):
            previous = self._require_active()
            self._guard.check_owner(caller)
            component = self._catalog.resolve(target)

            if component.proxiable_uuid() != PROXIABLE_UUID:
                raise IncompatibleImplementation(
                    "implementation is not proxiable under this registry",
                    details={"implementation": component.name},
                )
            if component is previous and not self._config.allow_same_upgrade:
                raise SameImplementation(component.name)
            # Raises IncompatibleLayout before touching anything.
            self._state.extend_layout(component.layout)
            self._active = component
            log.info(
                "upgraded %s(v%d) -> %s(v%d) by %s",
                previous.name, previous.version, component.name, component.version, caller,
            )
            return self._events.emit(
                ev.UPGRADED,
                {
                    "previous_version": previous.version,
                    "new_version": component.version,
                    "caller": caller,
                    "implementation": component.name,
                    "code_hash": "0x" + component.code_hash().hex(),
                },
            )

    def transfer_ownership(self, caller: str, new_owner: str) -> ev.Event:
        with self._serialized("transfer_ownership", caller):
            self._require_active()
            previous = self._guard.transfer_ownership(caller, new_owner)
            log.info("ownership %s -> %s", previous, new_owner)
            return self._events.emit(ev.OWNERSHIP_TRANSFERRED, {"previous": previous, "new": new_owner})

    # ------------------------------------------------------------------ #
    # Persistence
    # ------------------------------------------------------------------ #

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            active = self._active
            return {
                "initialized": bool(self._init),
                "owner": self._guard.owner,
                "implementation": active.name if active else None,
                "code_hash": "0x" + active.code_hash().hex() if active else None,
                "layout": self._state.layout.to_list(),
                "values": self._state.dump(),
                "events": self._events.to_receipts(),
            }

    @classmethod
    def from_snapshot(
        cls,
        data: Mapping[str, Any],
        catalog: Optional[ComponentCatalog] = None,
        *,
        config: Optional[ProxyConfig] = None,
        backend: Optional[StorageBackend] = None,
    ) -> "ComponentRegistry":
        """
        Rebuild a registry from `snapshot()` output.

        Without an explicit catalog, the built-in one is sized from the saved
        `stored_value` slot, not from the current config, so a deployment keeps
        the width it was created with.
        """
        layout = StorageLayout.from_list(data["layout"])
        if catalog is None:
            catalog = default_catalog(layout.slot(STORED_VALUE).bits)
        reg = cls(catalog, config=config, backend=backend)
        reg._state = PersistentState.load(layout, data.get("values") or {}, backend)
        reg._events = ev.EventLog.from_receipts(list(data.get("events") or []))
        if data.get("initialized"):
            component = reg._catalog.resolve(data["implementation"])
            saved_hash = data.get("code_hash")
            if saved_hash and saved_hash.lower() != "0x" + component.code_hash().hex():
                raise IncompatibleImplementation(
                    "saved code hash does not match the catalog implementation",
                    details={"implementation": component.name, "code_hash": saved_hash},
                )
            reg._guard.init_owner(data["owner"])
            reg._active = component
            reg._init.mark()
        return reg


__all__ = ["ComponentRegistry", "RegistryPhase"]
