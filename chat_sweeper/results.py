"""
Tagged results returned by SweeperService

Core components raise SweeperError subclasses; the service boundary turns
them into one of these so callers never have to catch exceptions.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, TypeVar, Union

from chat_sweeper.errors import SweeperError


T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful outcome carrying a value"""
    value: T
    success: bool = field(default=True, init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {"success": True, "data": _plain(self.value)}


@dataclass(frozen=True)
class PartialFailure(Generic[T]):
    """Bulk outcome where some units succeeded and others failed"""
    value: T
    errors: List[Dict[str, str]] = field(default_factory=list)
    success: bool = field(default=True, init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": True,
            "partial": True,
            "data": _plain(self.value),
            "errors": list(self.errors),
        }


@dataclass(frozen=True)
class Err:
    """Failed outcome: an error kind plus a human-readable message"""
    kind: str
    error: str
    success: bool = field(default=False, init=False)

    @classmethod
    def from_exception(cls, error: SweeperError) -> "Err":
        return cls(kind=error.kind, error=error.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"success": False, "kind": self.kind, "error": self.error}


Result = Union[Ok, PartialFailure, Err]


def _plain(value: Any) -> Any:
    """Render dataclass-ish values into JSON friendly structures"""
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    if isinstance(value, dict):
        return {key: _plain(item) for key, item in value.items()}
    return value
