# -*- coding: utf-8 -*-
"""
deployments.py
==============

Side-table of box deployments, queried by address.

What this does
--------------
- ``deploy`` creates a fresh proxy, calls ``initialize`` exactly once with the
  deployer as caller, and records the deployment.
- ``latest`` answers "the most recently deployed proxy" for upgrade tooling;
  nothing in the core relies on implicit global lookup.
- ``load``/``save`` persist a proxy's registry snapshot between runs.

On-disk layout
--------------
  <home>/deployments/<network>.json          # {"deployments": [record, ...]}
  <home>/state/<network>/<address>.json      # BoxProxy.to_dict() snapshot

Records are ``{address, deployer, implementation, code_hash, nonce}``.
Files are canonical JSON written atomically (tmp, fsync, rename).

A book has a single writer. The in-process lock serializes deploys within one
process only; two processes deploying into the same home and network at once
can allocate the same nonce, and the later index write wins.
"""
from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .components import ComponentCatalog, default_catalog
from .config import ProxyConfig, load_config
from .errors import DeploymentNotFound, NotInitialized
from .hashing import sha3_256
from .proxy import BoxProxy
from .registry import ComponentRegistry

log = logging.getLogger(__name__)

_JSON_SEPARATORS = (",", ":")


def canonical_json_str(obj: Any) -> str:
    return json.dumps(obj, ensure_ascii=False, sort_keys=True, separators=_JSON_SEPARATORS, allow_nan=False)


def atomic_write_text(path: Union[str, os.PathLike], text: str) -> Path:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(dir=str(target.parent), delete=False) as tf:
        tf.write(text.encode("utf-8"))
        tf.flush()
        os.fsync(tf.fileno())
        tmp_name = tf.name
    os.replace(tmp_name, target)  # atomic on POSIX
    return target


def derive_address(deployer: str, nonce: int) -> str:
    """Stable 20-byte hex address from (deployer, nonce)."""
    return "0x" + sha3_256(f"{deployer}:{nonce}".encode("utf-8")).hex()[:40]


@dataclass(frozen=True)
class DeploymentRecord:
    address: str
    deployer: str
    implementation: str
    code_hash: str
    nonce: int


class DeploymentBook:
    def __init__(
        self,
        home: Optional[Path] = None,
        network: Optional[str] = None,
        *,
        config: Optional[ProxyConfig] = None,
        catalog: Optional[ComponentCatalog] = None,
    ) -> None:
        self.config = config or load_config()
        self.home = Path(home) if home is not None else self.config.home
        self.network = network or self.config.network
        self.catalog = catalog or default_catalog(self.config.value_bits)
        self._explicit_catalog = catalog
        self._lock = threading.Lock()

    # ------------------------------------------------------------------ paths

    @property
    def index_path(self) -> Path:
        return self.home / "deployments" / f"{self.network}.json"

    def state_path(self, address: str) -> Path:
        return self.home / "state" / self.network / f"{address.lower()}.json"

    # ------------------------------------------------------------------ index

    def records(self) -> List[DeploymentRecord]:
        if not self.index_path.is_file():
            return []
        data = json.loads(self.index_path.read_text(encoding="utf-8"))
        return [DeploymentRecord(**r) for r in data.get("deployments", [])]

    def _write_records(self, records: List[DeploymentRecord]) -> None:
        atomic_write_text(self.index_path, canonical_json_str({"deployments": [asdict(r) for r in records]}))

    def record(self, address: str) -> DeploymentRecord:
        want = address.lower()
        for r in self.records():
            if r.address.lower() == want:
                return r
        raise DeploymentNotFound(address, network=self.network)

    def latest(self) -> DeploymentRecord:
        recs = self.records()
        if not recs:
            raise DeploymentNotFound(network=self.network)
        return max(recs, key=lambda r: r.nonce)

    # ------------------------------------------------------------------ proxies

    def deploy(self, deployer: str) -> BoxProxy:
        """
        Create, initialize and record a new proxy. `deployer` becomes owner and
        the box starts at version 1, sized by the current `value_bits`.
        """
        with self._lock:
            recs = self.records()
            nonce = len(recs)
            address = derive_address(deployer, nonce)
            registry = ComponentRegistry(self.catalog, config=self.config)
            proxy = BoxProxy(address, registry)
            proxy.initialize(deployer)

            active = registry.active
            if active is None:
                raise NotInitialized()
            rec = DeploymentRecord(
                address=address,
                deployer=deployer,
                implementation=active.name,
                code_hash="0x" + active.code_hash().hex(),
                nonce=nonce,
            )
            self.save(proxy)
            self._write_records(recs + [rec])
        log.info("deployed %s on %s by %s (%s)", address, self.network, deployer, active.name)
        return proxy

    def load(self, address: Optional[str] = None) -> BoxProxy:
        """
        Load the proxy at `address`, or the latest deployment when omitted.

        The saved layout decides the value width unless the book was given an
        explicit catalog.
        """
        rec = self.record(address) if address else self.latest()
        path = self.state_path(rec.address)
        if not path.is_file():
            raise DeploymentNotFound(rec.address, network=self.network)
        data = json.loads(path.read_text(encoding="utf-8"))
        return BoxProxy.from_dict(data, self._explicit_catalog, config=self.config)

    def save(self, proxy: BoxProxy) -> Path:
        return atomic_write_text(self.state_path(proxy.address), canonical_json_str(proxy.to_dict()))


__all__ = [
    "DeploymentBook",
    "DeploymentRecord",
    "derive_address",
    "canonical_json_str",
    "atomic_write_text",
]
