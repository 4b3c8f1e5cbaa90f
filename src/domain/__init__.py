"""
Domain layer - Pure business logic with zero framework imports.

This package contains the email ownership registry: the claim/verify state
machine for account email addresses. It defines its own port interfaces for
infrastructure abstraction, ensuring true hexagonal architecture decoupling.
"""

from .authentication import PasswordAuthenticator
from .context import RequestContext
from .email_registry import EmailRegistry
from .exceptions import DeadlineExceeded, ErrorKind, RegistryError, StorageError
from .ports import (
    Account,
    AuthenticationMethod,
    EmailRecord,
    EmailSender,
    EmailStore,
    Role,
    VerifyResult,
)
from .verification import EmailVerificationService

__all__ = [
    "Account",
    "AuthenticationMethod",
    "DeadlineExceeded",
    "EmailRecord",
    "EmailRegistry",
    "EmailSender",
    "EmailStore",
    "EmailVerificationService",
    "ErrorKind",
    "PasswordAuthenticator",
    "RegistryError",
    "RequestContext",
    "Role",
    "StorageError",
    "VerifyResult",
]
