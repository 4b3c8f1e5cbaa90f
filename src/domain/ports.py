"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the entities the registry works with and the
interfaces (ports) that the domain requires from infrastructure.
Adapters implement these protocols.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol
from uuid import UUID

from .context import RequestContext


@dataclass(frozen=True)
class EmailRecord:
    """
    Email address known to the registry.

    ``account_id`` is None for provisioned addresses that nobody has claimed
    yet. ``verification_code`` is only meaningful while ``verified`` is False.
    """

    id: UUID
    address: str
    account_id: UUID | None
    verification_code: str
    verified: bool = False


@dataclass(frozen=True)
class AuthenticationMethod:
    """Authentication edge of an account. Secrets are never loaded."""

    id: UUID
    service: str
    identifier: str


@dataclass(frozen=True)
class Role:
    id: UUID
    name: str


@dataclass(frozen=True)
class Account:
    """Account with the edges attached by the registry lookups."""

    id: UUID
    handle: str
    name: str
    emails: list[EmailRecord] = field(default_factory=list)
    authentication: list[AuthenticationMethod] = field(default_factory=list)
    roles: list[Role] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)


class VerifyResult(Enum):
    """
    Result of a code verification attempt.

    A wrong code is an ordinary outcome, not an error.
    """

    SUCCESS = "success"
    INVALID_CODE = "invalid_code"


class EmailStore(Protocol):
    """
    Port interface for email record persistence.

    Conditional writes report a lost race through their return value
    (None or a zero row count) instead of raising. Any other failure is
    raised as StorageError.
    """

    def get_email(self, ctx: RequestContext, address: str) -> EmailRecord | None:
        """Point lookup by address. Returns None when no record exists."""
        ...

    def create_email(
        self, ctx: RequestContext, address: str, account_id: UUID | None, code: str
    ) -> EmailRecord | None:
        """
        Create a new unverified record.

        Args:
            address: Email address (unique key)
            account_id: Owner, or None for a provisioned address
            code: Verification code

        Returns:
            Created record, or None if the address already exists
        """
        ...

    def claim_unowned(
        self, ctx: RequestContext, address: str, account_id: UUID, code: str
    ) -> EmailRecord | None:
        """
        Atomically assign an owner to an unowned record.

        Sets owner and code and resets verified, only where the record
        currently has no owner.

        Returns:
            Updated record, or None if no unowned record matched
        """
        ...

    def reissue_code(
        self, ctx: RequestContext, address: str, account_id: UUID, code: str
    ) -> EmailRecord | None:
        """
        Atomically replace the code of an unverified record owned by account_id.

        Returns:
            Updated record, or None if no such unverified record matched
        """
        ...

    def mark_verified(self, ctx: RequestContext, address: str, account_id: UUID) -> int:
        """Set verified where address and owner match. Returns affected row count."""
        ...

    def delete_email(self, ctx: RequestContext, email_id: UUID, account_id: UUID) -> int:
        """Delete where id and owner match. Returns affected row count."""
        ...

    def find_account_by_code(self, ctx: RequestContext, address: str, code: str) -> Account | None:
        """Account owning a record matching address and code exactly (emails and authentication loaded)."""
        ...

    def find_account_by_email(self, ctx: RequestContext, address: str) -> Account | None:
        """Account owning a record with this address (all edges loaded)."""
        ...

    def get_password_credential(self, ctx: RequestContext, handle: str) -> tuple[UUID, str] | None:
        """Account id and bcrypt hash for the account's password authentication."""
        ...

    def ping(self, ctx: RequestContext) -> None:
        """Raise StorageError if the store is unreachable."""
        ...


class EmailSender(Protocol):
    """Port interface for email delivery."""

    def send_verification_code(self, email: str, code: str) -> None:
        """
        Send verification code to email address.

        Args:
            email: Recipient email address
            code: Verification code
        """
        ...
