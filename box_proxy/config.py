"""
box_proxy.config: storage width, upgrade policy, deployment book location.

Configuration precedence:
  1) Environment variables (BOX_PROXY_*)
  2) Optional JSON or YAML file named by BOX_PROXY_CONFIG_FILE
  3) Hardcoded defaults below

Key env vars (case-insensitive where boolean):
  - BOX_PROXY_VALUE_BITS          (int)   default: 256  (clamped to 8..256)
  - BOX_PROXY_ALLOW_SAME_UPGRADE  (bool)  default: true
  - BOX_PROXY_HOME                (path)  default: ./.box-proxy
  - BOX_PROXY_NETWORK             (str)   default: devnet
  - BOX_PROXY_LOG_LEVEL           (str)   default: WARNING

The value width is captured into a storage layout when a registry is created;
changing it later never reshapes an existing deployment.

Usage:
    from box_proxy.config import load_config
    CFG = load_config()
    if CFG.allow_same_upgrade: ...
"""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

DEFAULT_VALUE_BITS = 256
DEFAULT_HOME = ".box-proxy"
DEFAULT_NETWORK = "devnet"
DEFAULT_LOG_LEVEL = "WARNING"

_FILE_KEYS = ("value_bits", "allow_same_upgrade", "home", "network", "log_level")


# ----------------------------- helpers ---------------------------------------


def _as_bool(raw: Any, default: bool) -> bool:
    if raw is None:
        return default
    if isinstance(raw, bool):
        return raw
    return str(raw).strip().lower() in ("1", "true", "t", "yes", "y", "on")


def _as_int(raw: Any, default: int, *, min_v: int, max_v: int) -> int:
    if raw is None:
        return default
    try:
        v = int(raw, 0) if isinstance(raw, str) else int(raw)
    except (TypeError, ValueError):
        return default
    return max(min_v, min(max_v, v))


def _read_file(path: Path) -> Dict[str, Any]:
    """Load a JSON or YAML mapping; unknown keys are ignored."""
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in (".yaml", ".yml"):
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text or "{}")
    if not isinstance(data, Mapping):
        raise ValueError(f"config file {path} must contain a mapping")
    return {k: data[k] for k in _FILE_KEYS if k in data}


# ------------------------------- config --------------------------------------


@dataclass(frozen=True)
class ProxyConfig:
    value_bits: int = DEFAULT_VALUE_BITS
    allow_same_upgrade: bool = True
    home: Path = Path(DEFAULT_HOME)
    network: str = DEFAULT_NETWORK
    log_level: str = DEFAULT_LOG_LEVEL

    def as_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["home"] = str(self.home)
        return d


def build_config(env: Optional[Mapping[str, str]] = None) -> ProxyConfig:
    """
    Build a ProxyConfig from `env` (defaults to os.environ) without caching.
    """
    env = os.environ if env is None else env

    file_vals: Dict[str, Any] = {}
    cfg_file = env.get("BOX_PROXY_CONFIG_FILE")
    if cfg_file:
        file_vals = _read_file(Path(cfg_file).expanduser())

    def pick(key: str, env_name: str) -> Any:
        raw = env.get(env_name)
        return raw if raw is not None else file_vals.get(key)

    home = pick("home", "BOX_PROXY_HOME")
    return ProxyConfig(
        value_bits=_as_int(pick("value_bits", "BOX_PROXY_VALUE_BITS"), DEFAULT_VALUE_BITS, min_v=8, max_v=256),
        allow_same_upgrade=_as_bool(pick("allow_same_upgrade", "BOX_PROXY_ALLOW_SAME_UPGRADE"), True),
        home=Path(home).expanduser() if home else Path(DEFAULT_HOME),
        network=str(pick("network", "BOX_PROXY_NETWORK") or DEFAULT_NETWORK),
        log_level=str(pick("log_level", "BOX_PROXY_LOG_LEVEL") or DEFAULT_LOG_LEVEL).upper(),
    )


@lru_cache(maxsize=1)
def load_config() -> ProxyConfig:
    """
    Build and cache a ProxyConfig from environment + optional file + defaults.
    """
    return build_config()


__all__ = [
    "ProxyConfig",
    "build_config",
    "load_config",
    "DEFAULT_VALUE_BITS",
    "DEFAULT_HOME",
    "DEFAULT_NETWORK",
    "DEFAULT_LOG_LEVEL",
]
