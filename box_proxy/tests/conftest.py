"""
Pytest fixtures for box_proxy.

- Stable principals (owner / stranger) as deterministic 20-byte addresses.
- A fresh registry per test, initialized or not.
- An isolated deployment book under tmp_path with BOX_PROXY_* env cleared.
"""
from __future__ import annotations

import hashlib
from pathlib import Path

import pytest

from box_proxy.components import default_catalog
from box_proxy.config import ProxyConfig, load_config
from box_proxy.deployments import DeploymentBook
from box_proxy.registry import ComponentRegistry


def _det_address(tag: str) -> str:
    """Stable 20-byte hex address (0x...) from a tag."""
    return "0x" + hashlib.sha3_256(tag.encode("utf-8")).hexdigest()[:40]


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "BOX_PROXY_VALUE_BITS",
        "BOX_PROXY_ALLOW_SAME_UPGRADE",
        "BOX_PROXY_HOME",
        "BOX_PROXY_NETWORK",
        "BOX_PROXY_LOG_LEVEL",
        "BOX_PROXY_CONFIG_FILE",
    ):
        monkeypatch.delenv(name, raising=False)
    load_config.cache_clear()
    yield
    load_config.cache_clear()


@pytest.fixture
def alice() -> str:
    return _det_address("alice")


@pytest.fixture
def bob() -> str:
    return _det_address("bob")


@pytest.fixture
def config() -> ProxyConfig:
    return ProxyConfig()


@pytest.fixture
def registry(config: ProxyConfig) -> ComponentRegistry:
    return ComponentRegistry(default_catalog(256), config=config)


@pytest.fixture
def live(registry: ComponentRegistry, alice: str) -> ComponentRegistry:
    """Registry initialized by alice (Box1 active)."""
    registry.initialize(alice)
    return registry


@pytest.fixture
def book(tmp_path: Path, config: ProxyConfig) -> DeploymentBook:
    return DeploymentBook(tmp_path / "home", "testnet", config=config)
