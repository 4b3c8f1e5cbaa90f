"""
Email verification domain service - Add, verify and provision flows.

Orchestrates the steps the registry deliberately leaves to its caller:
address normalization, verification code generation, and handing the
stored code to the email sender.
"""

import secrets
from dataclasses import dataclass
from uuid import UUID

from .context import RequestContext
from .email_registry import EmailRegistry
from .ports import Account, EmailRecord, EmailSender, VerifyResult


def normalize_email(email: str) -> str:
    """
    Normalize email address for consistent storage and lookup.

    Applies: strip whitespace + lowercase
    """
    return email.strip().lower()


@dataclass
class EmailVerificationService:
    """Domain service for the email verification flow."""

    registry: EmailRegistry
    email_sender: EmailSender
    code_length: int = 6

    def add_email(self, ctx: RequestContext, account_id: UUID, email: str) -> EmailRecord:
        """
        Add an email address to an account and send it a verification code.

        Re-adding an unverified address sends a fresh code.

        Args:
            ctx: Request context
            account_id: Account adding the address
            email: Email address (will be normalized)

        Returns:
            The stored email record

        Raises:
            RegistryError: ALREADY_CLAIMED, ALREADY_VERIFIED or INTERNAL
        """
        address = self._normalize_email(email)
        record = self.registry.add(ctx, account_id, address, self._generate_verification_code())

        code = self.registry.get_code(ctx, address)
        self.email_sender.send_verification_code(address, code)
        return record

    def verify_email(self, ctx: RequestContext, email: str, code: str) -> VerifyResult:
        """
        Check a verification code and mark the address verified.

        Returns:
            SUCCESS, or INVALID_CODE when address and code do not match

        Raises:
            RegistryError: NOT_FOUND if the record vanished between lookup and
                verify, INTERNAL on storage failure
        """
        address = self._normalize_email(email)
        account = self.registry.lookup_code(ctx, address, code)
        if account is None:
            return VerifyResult.INVALID_CODE

        self.registry.verify(ctx, account.id, address)
        return VerifyResult.SUCCESS

    def provision_email(self, ctx: RequestContext, email: str) -> EmailRecord:
        """Create an unowned address with a seed code that nobody receives."""
        address = self._normalize_email(email)
        return self.registry.provision(ctx, address, self._generate_verification_code())

    def remove_email(self, ctx: RequestContext, account_id: UUID, email_id: UUID) -> None:
        self.registry.remove(ctx, account_id, email_id)

    def account_for_email(self, ctx: RequestContext, email: str) -> Account | None:
        return self.registry.lookup_account(ctx, self._normalize_email(email))

    def _normalize_email(self, email: str) -> str:
        return normalize_email(email)

    def _generate_verification_code(self) -> str:
        """
        Generate a cryptographically secure numeric verification code.

        Returns string to preserve leading zeros.
        """
        return "".join(secrets.choice("0123456789") for _ in range(self.code_length))
