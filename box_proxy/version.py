"""box_proxy.version: semantic version string.

Resolution order (first match wins):
- BOX_PROXY_VERSION environment variable (exact value)
- installed distribution metadata for 'box-proxy'
- BASE_VERSION + '+dev'
"""

from __future__ import annotations

import os
from functools import lru_cache
from importlib import metadata as importlib_metadata
from typing import Optional

# Bump when snapshot or deployment-book formats change.
BASE_VERSION = "0.1.0"


def _pkg_metadata_version(dist_name: str = "box-proxy") -> Optional[str]:
    """Try to read installed package version; None if unavailable."""
    try:
        v = importlib_metadata.version(dist_name)
    except importlib_metadata.PackageNotFoundError:
        return None
    return v if v and v != "0.0.0" else None


@lru_cache(maxsize=1)
def compute_version() -> str:
    val = os.getenv("BOX_PROXY_VERSION")
    if val:
        return val
    return _pkg_metadata_version() or f"{BASE_VERSION}+dev"


__version__ = compute_version()

__all__ = ["__version__", "BASE_VERSION", "compute_version"]
