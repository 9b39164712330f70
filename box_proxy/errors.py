from __future__ import annotations
# box_proxy/errors.py
"""
Error types for the upgradeable box proxy. Every failure is a caller
precondition violation: raised synchronously, never retried, safe to surface
over the CLI or logs.

Exports:
- BoxProxyError (base)
- AlreadyInitialized
- NotInitialized
- NotOwner
- InvalidOwner
- UnsupportedOperation
- ValueOutOfRange
- IncompatibleImplementation
- SameImplementation
- IncompatibleLayout
- UnknownImplementation
- DeploymentNotFound
"""


import json
from typing import Any, Dict, Mapping, Optional


class BoxProxyError(Exception):
    """Base class for box-proxy domain errors."""

    code: str = "BOX_ERROR"

    def __init__(self, message: str = "", *, details: Optional[Mapping[str, Any]] = None) -> None:
        self.message = message or self.__class__.__name__
        self.details = dict(details or {})
        super().__init__(self.__str__())

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}

    def __str__(self) -> str:  # pragma: no cover - trivial
        if self.details:
            # Keep this compact and stable for logs
            packed = json.dumps(self.details, sort_keys=True, separators=(",", ":"), default=str)
            return f"{self.code}: {self.message} [{packed}]"
        return f"{self.code}: {self.message}"


class AlreadyInitialized(BoxProxyError):
    """`initialize` was called on a registry that is already initialized."""

    code = "ALREADY_INITIALIZED"

    def __init__(self, message: str = "registry already initialized", **kw: Any) -> None:
        super().__init__(message, **kw)


class NotInitialized(BoxProxyError):
    code = "NOT_INITIALIZED"

    def __init__(self, message: str = "registry not initialized", **kw: Any) -> None:
        super().__init__(message, **kw)


class NotOwner(BoxProxyError):
    """Caller of an owner-gated operation is not the current owner."""

    code = "NOT_OWNER"

    def __init__(self, caller: Optional[str] = None, *, owner: Optional[str] = None) -> None:
        details: Dict[str, Any] = {}
        if caller is not None:
            details["caller"] = caller
        if owner is not None:
            details["owner"] = owner
        super().__init__("caller is not the owner", details=details)
        self.caller = caller


class InvalidOwner(BoxProxyError):
    """Ownership target is a null identifier (empty or the zero address)."""

    code = "INVALID_OWNER"

    def __init__(self, new_owner: Any = None) -> None:
        super().__init__("new owner is a null identifier", details={"new_owner": new_owner})


class UnsupportedOperation(BoxProxyError):
    """The active component's capability set lacks the requested operation."""

    code = "UNSUPPORTED_OPERATION"

    def __init__(self, operation: str, *, version: Optional[int] = None) -> None:
        details: Dict[str, Any] = {"operation": operation}
        if version is not None:
            details["version"] = version
        super().__init__(f"active implementation does not support {operation!r}", details=details)
        self.operation = operation


class ValueOutOfRange(BoxProxyError):
    code = "VALUE_OUT_OF_RANGE"

    def __init__(self, value: Any, *, bits: int) -> None:
        super().__init__(
            f"value does not fit in an unsigned {bits}-bit slot",
            details={"value": value, "bits": bits},
        )
        self.value = value
        self.bits = bits


class IncompatibleImplementation(BoxProxyError):
    """Upgrade target is not proxiable under this registry's UUID."""

    code = "INCOMPATIBLE_IMPLEMENTATION"


class SameImplementation(IncompatibleImplementation):
    code = "SAME_IMPLEMENTATION"

    def __init__(self, name: str) -> None:
        super().__init__("implementation is already active", details={"implementation": name})


class IncompatibleLayout(BoxProxyError):
    """Upgrade target would drop, reorder or resize an existing storage slot."""

    code = "INCOMPATIBLE_LAYOUT"


class UnknownImplementation(BoxProxyError):
    code = "UNKNOWN_IMPLEMENTATION"


class DeploymentNotFound(BoxProxyError):
    code = "DEPLOYMENT_NOT_FOUND"

    def __init__(self, address: Optional[str] = None, *, network: Optional[str] = None) -> None:
        details: Dict[str, Any] = {}
        if address is not None:
            details["address"] = address
        if network is not None:
            details["network"] = network
        msg = "no deployment at address" if address is not None else "no deployments recorded"
        super().__init__(msg, details=details)


__all__ = [
    "BoxProxyError",
    "AlreadyInitialized",
    "NotInitialized",
    "NotOwner",
    "InvalidOwner",
    "UnsupportedOperation",
    "ValueOutOfRange",
    "IncompatibleImplementation",
    "SameImplementation",
    "IncompatibleLayout",
    "UnknownImplementation",
    "DeploymentNotFound",
]
