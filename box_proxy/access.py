"""
box_proxy.access
================

Capability objects composed by the registry:

- ``OwnershipGuard``: one authorized principal; ``check_owner`` gates
  privileged operations and ``transfer_ownership`` hands the role over.
- ``InitializationFlag``: a set-once latch; the second ``mark`` fails with
  ``AlreadyInitialized`` whoever calls it.

Principals are opaque strings (an address like ``0x5fc8...`` or a name).
Comparison is exact. The empty string and the all-zero address are null
identifiers and can never own anything.

Neither object locks on its own; the registry holds its lock around every
call.
"""
from __future__ import annotations

import re
from typing import Optional

from .errors import AlreadyInitialized, InvalidOwner, NotOwner

_ZERO_ADDRESS_RE = re.compile(r"^0[xX]0+$")

__all__ = ["is_null_principal", "OwnershipGuard", "InitializationFlag"]


def is_null_principal(principal: object) -> bool:
    if not isinstance(principal, str):
        return True
    p = principal.strip()
    return not p or bool(_ZERO_ADDRESS_RE.match(p))


class OwnershipGuard:
    def __init__(self, owner: Optional[str] = None) -> None:
        self._owner: Optional[str] = None
        if owner is not None:
            self.init_owner(owner)

    @property
    def owner(self) -> Optional[str]:
        return self._owner

    def init_owner(self, owner: str) -> None:
        """
        Set the first owner. Does not overwrite an owner that is already set.
        """
        if is_null_principal(owner):
            raise InvalidOwner(owner)
        if self._owner is None:
            self._owner = owner

    def check_owner(self, caller: str) -> None:
        """Raise NotOwner unless `caller` equals the current owner."""
        if self._owner is None or caller != self._owner:
            raise NotOwner(caller, owner=self._owner)

    def transfer_ownership(self, caller: str, new_owner: str) -> str:
        """
        Owner-only: hand the role to `new_owner` (must not be null).

        Returns the previous owner.
        """
        self.check_owner(caller)
        if is_null_principal(new_owner):
            raise InvalidOwner(new_owner)
        previous = self._owner
        self._owner = new_owner
        return previous  # type: ignore[return-value]


class InitializationFlag:
    def __init__(self, initialized: bool = False) -> None:
        self._set = bool(initialized)

    def __bool__(self) -> bool:
        return self._set

    def mark(self) -> None:
        if self._set:
            raise AlreadyInitialized()
        self._set = True
