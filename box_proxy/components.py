"""
box_proxy.components
====================

Versioned box implementations and the catalog they are selected from.

Components are pure behavior: they own no state and operate on the
PersistentState handed to them by the registry. Swapping the active
component therefore never touches stored data.

What this module provides
-------------------------
- ``VersionedComponent``: base with an immutable version tag, a capability
  set, a storage layout, a deterministic code hash and the proxiable UUID.
- ``BoxV1`` (version 1): ``read``.
- ``BoxV2`` (version 2): ``read`` and an unrestricted ``write``.
- ``ComponentCatalog``: the compiled-in set of implementations, addressable
  by name, version tag or code hash. Names and version tags are never reused.

Compatibility
-------------
Every implementation reports ``proxiable_uuid()``, the keccak256 of
:data:`UPGRADE_NAMESPACE`. The registry refuses an upgrade target reporting
anything else, the same check a UUPS ``upgradeTo`` performs on-chain.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Dict, FrozenSet, Iterator, List, Optional, Union

from .errors import UnknownImplementation, UnsupportedOperation
from .hashing import keccak256
from .state import STORED_VALUE, PersistentState, StorageLayout, box_layout

#: Namespace tag that anchors the proxiable UUID.
UPGRADE_NAMESPACE: bytes = b"box-proxy/upgrade/v1"

#: 32-byte compatibility identifier shared by every box implementation.
PROXIABLE_UUID: bytes = keccak256(UPGRADE_NAMESPACE)

READ = "read"
WRITE = "write"


class VersionedComponent:
    name: str = ""
    version: int = 0
    capabilities: FrozenSet[str] = frozenset({READ})

    def __init__(self, layout: Optional[StorageLayout] = None) -> None:
        if not self.name or self.version <= 0:
            raise TypeError(f"{type(self).__name__} must define a name and a positive version")
        self._layout = layout if layout is not None else box_layout()

    @property
    def layout(self) -> StorageLayout:
        return self._layout

    def version_tag(self) -> int:
        return self.version

    def supports(self, operation: str) -> bool:
        return operation in self.capabilities

    def proxiable_uuid(self) -> bytes:
        return PROXIABLE_UUID

    def code_hash(self) -> bytes:
        desc = "{}:{}:{}:{}".format(
            self.name, self.version, ",".join(sorted(self.capabilities)), self._layout.describe()
        )
        return keccak256(desc.encode("utf-8"))

    def read(self, state: PersistentState) -> int:
        return state.get(STORED_VALUE)

    def write(self, state: PersistentState, new_value: int) -> int:
        raise UnsupportedOperation(WRITE, version=self.version)

    def __repr__(self) -> str:
        return f"<{self.name} v{self.version} {self._layout.describe()}>"


class BoxV1(VersionedComponent):
    """Read-only box."""

    name = "Box1"
    version = 1
    capabilities = frozenset({READ})


class BoxV2(VersionedComponent):
    """Box with a public setter. Any caller may write."""

    name = "Box2"
    version = 2
    capabilities = frozenset({READ, WRITE})

    def write(self, state: PersistentState, new_value: int) -> int:
        """Store `new_value`; returns the previous value for event emission."""
        return state.set(STORED_VALUE, new_value)


class ComponentCatalog:
    """Implementations known to a deployment, keyed by name and version."""

    def __init__(self, components: Optional[List[VersionedComponent]] = None) -> None:
        self._by_name: Dict[str, VersionedComponent] = {}
        self._by_version: Dict[int, VersionedComponent] = {}
        for c in components or ():
            self.register(c)

    def register(self, component: VersionedComponent) -> VersionedComponent:
        key = component.name.lower()
        if key in self._by_name:
            raise ValueError(f"implementation name already registered: {component.name}")
        if component.version in self._by_version:
            raise ValueError(f"version tag {component.version} already used by {self._by_version[component.version].name}")
        self._by_name[key] = component
        self._by_version[component.version] = component
        return component

    def resolve(self, identifier: Union[str, int, VersionedComponent]) -> VersionedComponent:
        """
        Look up an implementation by name ("Box2"), version tag (2, "2", "v2")
        or code hash ("0x..." 32 bytes). Components registered here pass
        through unchanged.
        """
        if isinstance(identifier, VersionedComponent):
            if self._by_name.get(identifier.name.lower()) is identifier:
                return identifier
            raise UnknownImplementation(
                "implementation is not part of this catalog", details={"implementation": repr(identifier)}
            )
        if isinstance(identifier, int) and not isinstance(identifier, bool):
            found = self._by_version.get(identifier)
        else:
            found = self._resolve_text(str(identifier).strip())
        if found is None:
            raise UnknownImplementation("unknown implementation", details={"identifier": str(identifier)})
        return found

    def _resolve_text(self, text: str) -> Optional[VersionedComponent]:
        low = text.lower()
        if low in self._by_name:
            return self._by_name[low]
        tag = low[1:] if low.startswith("v") else low
        if tag.isdigit():
            return self._by_version.get(int(tag))
        if low.startswith("0x") and len(low) == 66:
            for c in self._by_name.values():
                if c.code_hash().hex() == low[2:]:
                    return c
        return None

    def latest(self) -> VersionedComponent:
        if not self._by_version:
            raise UnknownImplementation("catalog is empty")
        return self._by_version[max(self._by_version)]

    def __iter__(self) -> Iterator[VersionedComponent]:
        return iter(sorted(self._by_version.values(), key=lambda c: c.version))

    def __len__(self) -> int:
        return len(self._by_version)


@lru_cache(maxsize=None)
def default_catalog(bits: int = 256) -> ComponentCatalog:
    """Box1 and Box2 sharing a single `stored_value` slot of `bits` width."""
    layout = box_layout(bits)
    return ComponentCatalog([BoxV1(layout), BoxV2(layout)])


__all__ = [
    "UPGRADE_NAMESPACE",
    "PROXIABLE_UUID",
    "READ",
    "WRITE",
    "VersionedComponent",
    "BoxV1",
    "BoxV2",
    "ComponentCatalog",
    "default_catalog",
]
