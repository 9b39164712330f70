from __future__ import annotations

import json
from pathlib import Path

import pytest

from box_proxy.config import ProxyConfig
from box_proxy.deployments import DeploymentBook, canonical_json_str, derive_address
from box_proxy.errors import (
    DeploymentNotFound,
    IncompatibleImplementation,
    NotOwner,
    UnsupportedOperation,
    ValueOutOfRange,
)
from box_proxy.proxy import BoxProxy
from box_proxy.state import box_layout


def test_derive_address_is_stable() -> None:
    a = derive_address("alice", 0)
    assert a == derive_address("alice", 0)
    assert a != derive_address("alice", 1)
    assert a.startswith("0x") and len(a) == 42


def test_empty_book(book: DeploymentBook) -> None:
    assert book.records() == []
    with pytest.raises(DeploymentNotFound):
        book.latest()
    with pytest.raises(DeploymentNotFound):
        book.load()


def test_deploy_initializes_once_and_records(book: DeploymentBook, alice: str) -> None:
    proxy = book.deploy(alice)

    assert proxy.owner == alice
    assert proxy.get_version() == 1
    assert proxy.get_value() == 0

    rec = book.latest()
    assert rec.address == proxy.address
    assert rec.deployer == alice
    assert rec.implementation == "Box1"
    assert rec.nonce == 0
    assert rec.code_hash.startswith("0x")

    index = json.loads(book.index_path.read_text(encoding="utf-8"))
    assert index["deployments"][0]["address"] == proxy.address
    assert book.index_path.read_text(encoding="utf-8") == canonical_json_str(index)


def test_latest_is_most_recent(book: DeploymentBook, alice: str, bob: str) -> None:
    first = book.deploy(alice)
    second = book.deploy(bob)
    assert first.address != second.address
    assert book.latest().address == second.address
    assert [r.nonce for r in book.records()] == [0, 1]
    assert book.record(first.address.upper().replace("0X", "0x")).deployer == alice


def test_upgrade_workflow_persists_between_loads(book: DeploymentBook, alice: str, bob: str) -> None:
    proxy = book.deploy(alice)

    loaded = book.load()
    loaded.upgrade_to(alice, "Box2")
    book.save(loaded)

    again = book.load(proxy.address)
    assert again.get_version() == 2
    again.set_value(bob, 42)
    book.save(again)

    final = book.load(proxy.address)
    assert final.get_value() == 42
    assert final.owner == alice
    with pytest.raises(NotOwner):
        final.upgrade_to(bob, "Box1")
    assert [e["name"] for e in final.to_dict()["events"]] == ["Initialized", "Upgraded", "ValueUpdated"]


def test_failed_call_is_not_persisted(book: DeploymentBook, alice: str) -> None:
    proxy = book.deploy(alice)
    loaded = book.load(proxy.address)
    with pytest.raises(UnsupportedOperation):
        loaded.set_value(alice, 1)
    assert book.load(proxy.address).get_value() == 0


def test_unknown_address(book: DeploymentBook, alice: str) -> None:
    book.deploy(alice)
    with pytest.raises(DeploymentNotFound) as info:
        book.load("0x" + "11" * 20)
    assert info.value.details["network"] == "testnet"


def test_networks_are_separate(tmp_path: Path, alice: str, config) -> None:
    dev = DeploymentBook(tmp_path, "devnet", config=config)
    test = DeploymentBook(tmp_path, "testnet", config=config)
    dev.deploy(alice)
    assert test.records() == []


def test_proxy_dict_roundtrip(alice: str) -> None:
    proxy = BoxProxy("0xabc")
    proxy.initialize(alice)
    proxy.upgrade_to(alice, "Box2")
    proxy.set_value(alice, 9)
    clone = BoxProxy.from_dict(proxy.to_dict())
    assert clone.address == "0xabc"
    assert clone.get_value() == 9
    assert clone.get_version() == 2
    assert "Box2" in repr(clone)


def test_deploy_always_starts_at_version_one(book: DeploymentBook, alice: str) -> None:
    proxy = book.deploy(alice)
    assert proxy.get_version() == 1
    assert book.latest().implementation == "Box1"
    with pytest.raises(UnsupportedOperation):
        proxy.set_value(alice, 1)
    with pytest.raises(TypeError):
        book.deploy(alice, "Box2")  # type: ignore[call-arg]
    assert len(book.records()) == 1


def test_reload_keeps_deployed_width_after_config_change(tmp_path: Path, alice: str, bob: str) -> None:
    narrow = DeploymentBook(tmp_path, "devnet", config=ProxyConfig(value_bits=64))
    proxy = narrow.deploy(alice)

    wide = DeploymentBook(tmp_path, "devnet", config=ProxyConfig())
    loaded = wide.load(proxy.address)
    loaded.upgrade_to(alice, "Box2")
    with pytest.raises(ValueOutOfRange):
        loaded.set_value(bob, 1 << 64)
    loaded.set_value(bob, (1 << 64) - 1)
    wide.save(loaded)

    again = wide.load()
    assert again.get_version() == 2
    assert again.get_value() == (1 << 64) - 1
    assert again.registry.state.layout == box_layout(64)


def test_reload_rejects_mismatched_code_hash(book: DeploymentBook, alice: str) -> None:
    proxy = book.deploy(alice)
    path = book.state_path(proxy.address)
    data = json.loads(path.read_text(encoding="utf-8"))
    data["code_hash"] = "0x" + "00" * 32
    path.write_text(json.dumps(data), encoding="utf-8")

    with pytest.raises(IncompatibleImplementation) as info:
        book.load(proxy.address)
    assert info.value.details["implementation"] == "Box1"
