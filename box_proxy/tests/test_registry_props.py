# -*- coding: utf-8 -*-
"""
Property tests for the registry's upgrade/storage-continuity laws.

- after initialize, and before any write, read() == 0
- non-owner upgrades always fail with NotOwner and change nothing
- writes while v1 is active always fail and change nothing
- with v2 active, write(v) then read() == v for every uint256
- version_tag() tracks the active implementation over any call sequence
- initialize() a second time always fails, whoever calls
"""
from __future__ import annotations

from typing import List, Tuple

import pytest
from hypothesis import given, settings, strategies as st

from box_proxy.config import ProxyConfig
from box_proxy.errors import AlreadyInitialized, BoxProxyError, NotOwner, UnsupportedOperation
from box_proxy.registry import ComponentRegistry

OWNER = "0xowner"
UINT256 = st.integers(min_value=0, max_value=(1 << 256) - 1)
PRINCIPAL = st.text(alphabet="abcdefx0123456789", min_size=1, max_size=12)
STRANGER = PRINCIPAL.filter(lambda p: p != OWNER)
TARGET = st.sampled_from(["Box1", "Box2", 1, 2, "v1", "v2"])

# One step of a random call sequence.
OP = st.one_of(
    st.tuples(st.just("write"), PRINCIPAL, UINT256),
    st.tuples(st.just("upgrade"), st.one_of(st.just(OWNER), STRANGER), TARGET),
    st.tuples(st.just("read"), st.just(""), st.just(0)),
)


def _fresh() -> ComponentRegistry:
    reg = ComponentRegistry(config=ProxyConfig())
    reg.initialize(OWNER)
    return reg


@settings(max_examples=50, deadline=None)
@given(target=TARGET, caller=PRINCIPAL)
def test_read_is_zero_until_written(target, caller: str) -> None:
    reg = _fresh()
    assert reg.read() == 0
    reg.upgrade(OWNER, target)
    assert reg.read() == 0
    with pytest.raises(AlreadyInitialized):
        reg.initialize(caller)


@settings(max_examples=100, deadline=None)
@given(stranger=STRANGER, target=TARGET, value=UINT256)
def test_non_owner_upgrade_never_changes_anything(stranger: str, target, value: int) -> None:
    reg = _fresh()
    reg.upgrade(OWNER, "Box2")
    reg.write(stranger, value)
    before = reg.snapshot()
    with pytest.raises(NotOwner):
        reg.upgrade(stranger, target)
    assert reg.snapshot() == before


@settings(max_examples=100, deadline=None)
@given(caller=PRINCIPAL, value=UINT256)
def test_v1_write_never_changes_value(caller: str, value: int) -> None:
    reg = _fresh()
    with pytest.raises(UnsupportedOperation):
        reg.write(caller, value)
    assert reg.read() == 0
    assert len(reg.events) == 1


@settings(max_examples=200, deadline=None)
@given(caller=PRINCIPAL, value=UINT256)
def test_v2_write_then_read(caller: str, value: int) -> None:
    reg = _fresh()
    reg.upgrade(OWNER, "Box2")
    reg.write(caller, value)
    assert reg.read() == value


@settings(max_examples=100, deadline=None)
@given(ops=st.lists(OP, max_size=25))
def test_random_sequences_match_model(ops: List[Tuple[str, str, object]]) -> None:
    """Compare the registry against a two-field model: (version, value)."""
    reg = _fresh()
    version, value = 1, 0
    for kind, who, arg in ops:
        if kind == "read":
            assert reg.read() == value
            continue
        try:
            if kind == "write":
                reg.write(who, arg)  # type: ignore[arg-type]
                assert version == 2
                value = arg  # type: ignore[assignment]
            else:
                reg.upgrade(who, arg)  # type: ignore[arg-type]
                assert who == OWNER
                version = reg.catalog.resolve(arg).version  # type: ignore[arg-type]
        except NotOwner:
            assert kind == "upgrade" and who != OWNER
        except UnsupportedOperation:
            assert kind == "write" and version == 1
        except BoxProxyError as exc:  # pragma: no cover - model mismatch
            pytest.fail(f"unexpected {exc!r}")
        assert reg.version_tag() == version
        assert reg.read() == value
