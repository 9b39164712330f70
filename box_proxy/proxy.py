"""
box_proxy.proxy: the caller-facing surface of one deployed box.

A BoxProxy pairs a stable address with a ComponentRegistry and exposes the
five operations callers use:

    proxy = BoxProxy(address)
    proxy.initialize(alice)
    proxy.get_version()           # 1
    proxy.upgrade_to(alice, "Box2")
    proxy.set_value(bob, 42)      # any caller once v2 is active
    proxy.get_value()             # 42
"""
from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from .components import ComponentCatalog
from .config import ProxyConfig
from .events import Event
from .registry import ComponentRegistry, Target


class BoxProxy:
    def __init__(
        self,
        address: str,
        registry: Optional[ComponentRegistry] = None,
        *,
        config: Optional[ProxyConfig] = None,
    ) -> None:
        self.address = address
        self.registry = registry if registry is not None else ComponentRegistry(config=config)

    def initialize(self, caller: str) -> Event:
        return self.registry.initialize(caller)

    def get_value(self) -> int:
        return self.registry.read()

    def get_version(self) -> int:
        return self.registry.version_tag()

    def set_value(self, caller: str, new_value: int) -> int:
        return self.registry.write(caller, new_value)

    def upgrade_to(self, caller: str, implementation: Target) -> Event:
        return self.registry.upgrade(caller, implementation)

    def transfer_ownership(self, caller: str, new_owner: str) -> Event:
        return self.registry.transfer_ownership(caller, new_owner)

    @property
    def owner(self) -> Optional[str]:
        return self.registry.owner

    def to_dict(self) -> Dict[str, Any]:
        return {"address": self.address, **self.registry.snapshot()}

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        catalog: Optional[ComponentCatalog] = None,
        *,
        config: Optional[ProxyConfig] = None,
    ) -> "BoxProxy":
        return cls(data["address"], ComponentRegistry.from_snapshot(data, catalog, config=config))

    def __repr__(self) -> str:
        active = self.registry.active
        return f"<BoxProxy {self.address} {active.name if active else 'uninitialized'}>"


__all__ = ["BoxProxy"]
