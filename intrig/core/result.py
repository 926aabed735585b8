"""Explicit success/error values returned across component boundaries.

Usage:
    result = controller.get_project(path)
    match result:
        case Ok(project):
            ...
        case Err(error):
            ...
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Optional, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful outcome carrying a value."""
    value: T


@dataclass(frozen=True)
class Err(Generic[E]):
    """Failed outcome carrying an error."""
    error: E


Result = Union[Ok[T], Err[E]]


class ErrorCode(str, Enum):
    PROJECT_NOT_FOUND = "PROJECT_NOT_FOUND"
    DAEMON_START_FAILED = "DAEMON_START_FAILED"
    DAEMON_UNAVAILABLE = "DAEMON_UNAVAILABLE"
    REGISTRY_ERROR = "REGISTRY_ERROR"
    REQUEST_TIMEOUT = "REQUEST_TIMEOUT"
    INVALID_RESPONSE = "INVALID_RESPONSE"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"


@dataclass(frozen=True)
class DiscoveryError:
    """
    Error value for discovery, lifecycle and daemon client operations.

    Attributes:
        code: One of the closed set of ErrorCode values
        message: Human readable description
        cause: Underlying exception, if any
        status_code: HTTP status for errors produced from a daemon response
    """
    code: ErrorCode
    message: str
    cause: Optional[Any] = None
    status_code: Optional[int] = None

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


def discovery_error(
    code: ErrorCode,
    message: str,
    cause: Optional[Any] = None,
    status_code: Optional[int] = None,
) -> Err[DiscoveryError]:
    """Shorthand for ``Err(DiscoveryError(...))``."""
    return Err(DiscoveryError(code, message, cause, status_code))
