"""
Domain exceptions - Tagged error values for the email registry.

Registry operations fail with a single error type, RegistryError, whose
``kind`` is one of a small closed set of ErrorKind values. Callers branch on
the kind rather than on an exception hierarchy, which keeps failure handling
the same across every operation.

Storage adapters raise StorageError; the registry re-classifies it at the
boundary.
"""

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Classification attached to every RegistryError."""

    ALREADY_CLAIMED = "already_claimed"
    ALREADY_VERIFIED = "already_verified"
    NOT_FOUND = "not_found"
    INTERNAL = "internal"


class RegistryError(Exception):
    """
    Failure of a registry operation.

    Attributes:
        kind: ErrorKind classification
        message: Human readable description
        context: Request context (request id, operation, address, ...)
    """

    def __init__(self, kind: ErrorKind, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.context = dict(context or {})

    def __str__(self) -> str:
        if not self.context:
            return f"{self.kind.value}: {self.message}"
        details = " ".join(f"{key}={value}" for key, value in sorted(self.context.items()))
        return f"{self.kind.value}: {self.message} ({details})"


class StorageError(Exception):
    """Unexpected failure inside a storage adapter."""

    pass


class DeadlineExceeded(StorageError):
    """Request deadline passed or the request was cancelled."""

    pass
