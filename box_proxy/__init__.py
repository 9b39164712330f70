"""
box_proxy: an upgradeable box behind an owner-gated proxy (UUPS pattern).

Two box implementations share one storage layout:

- Box1 (version 1): read-only ``get_value`` / ``get_version``
- Box2 (version 2): adds an unrestricted ``set_value``

A ComponentRegistry owns the persistent state and the owner, forwards calls to
the active implementation and swaps it on an owner's ``upgrade``. Stored data
survives every swap.

    from box_proxy import BoxProxy
    proxy = BoxProxy("0x01")
    proxy.initialize("alice")
    proxy.upgrade_to("alice", "Box2")
    proxy.set_value("bob", 42)
    assert proxy.get_value() == 42
"""

from __future__ import annotations

from .version import __version__
from .access import InitializationFlag, OwnershipGuard
from .components import (
    PROXIABLE_UUID,
    BoxV1,
    BoxV2,
    ComponentCatalog,
    VersionedComponent,
    default_catalog,
)
from .config import ProxyConfig, load_config
from .deployments import DeploymentBook, DeploymentRecord
from .errors import (
    AlreadyInitialized,
    BoxProxyError,
    DeploymentNotFound,
    IncompatibleImplementation,
    IncompatibleLayout,
    InvalidOwner,
    NotInitialized,
    NotOwner,
    SameImplementation,
    UnknownImplementation,
    UnsupportedOperation,
    ValueOutOfRange,
)
from .events import Event, EventLog
from .proxy import BoxProxy
from .registry import ComponentRegistry, RegistryPhase
from .state import PersistentState, Slot, StorageLayout


def version() -> str:
    """Return the box_proxy semantic version string."""
    return __version__


__all__ = [
    "__version__",
    "version",
    "InitializationFlag",
    "OwnershipGuard",
    "PROXIABLE_UUID",
    "BoxV1",
    "BoxV2",
    "ComponentCatalog",
    "VersionedComponent",
    "default_catalog",
    "ProxyConfig",
    "load_config",
    "DeploymentBook",
    "DeploymentRecord",
    "AlreadyInitialized",
    "BoxProxyError",
    "DeploymentNotFound",
    "IncompatibleImplementation",
    "IncompatibleLayout",
    "InvalidOwner",
    "NotInitialized",
    "NotOwner",
    "SameImplementation",
    "UnknownImplementation",
    "UnsupportedOperation",
    "ValueOutOfRange",
    "Event",
    "EventLog",
    "BoxProxy",
    "ComponentRegistry",
    "RegistryPhase",
    "PersistentState",
    "Slot",
    "StorageLayout",
]
