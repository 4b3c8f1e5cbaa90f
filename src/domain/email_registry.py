"""
Email registry - Claim/verify state machine for account email addresses.

Email Ownership States
======================

- UNCLAIMED: record exists without an owner (provisioned by an admin or an
  integration, e.g. for a newsletter)
- CLAIMED: record owned by an account, verified = false
- VERIFIED: record owned by an account, verified = true

Claim decision (add):

    no record                    -> create, owner = caller, verified = false
    owned by another account     -> ALREADY_CLAIMED
    owned by caller, verified    -> ALREADY_VERIFIED
    owned by caller, unverified  -> replace code only
    unowned                      -> owner = caller, new code, verified = false

Every write is a conditional statement at the storage level (unique insert
or guarded update). A write that matches zero rows means another request got
there first and is reported as a conflict, never retried and never merged.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from .context import RequestContext
from .exceptions import ErrorKind, RegistryError, StorageError
from .ports import Account, EmailRecord, EmailStore

logger = logging.getLogger(__name__)


@dataclass
class EmailRegistry:
    """
    Domain service owning the email ownership rules.

    Holds a reference to the injected store and nothing else.
    """

    store: EmailStore

    def add(self, ctx: RequestContext, account_id: UUID, address: str, code: str) -> EmailRecord:
        """
        Claim an email address for an account.

        Args:
            ctx: Request context
            account_id: Claiming account
            address: Email address (validated upstream)
            code: Freshly generated verification code

        Returns:
            The created or updated record

        Raises:
            ValueError: If code is empty
            RegistryError: ALREADY_CLAIMED, ALREADY_VERIFIED or INTERNAL
        """
        if not code:
            raise ValueError("verification code must not be empty")

        context = self._context(ctx, "add", address=address, account_id=account_id)

        with self._storage(context):
            existing = self.store.get_email(ctx, address)

        if existing is None:
            with self._storage(context):
                created = self.store.create_email(ctx, address, account_id, code)
            if created is None:
                # Lost the insert race against a concurrent claim
                logger.warning("Concurrent claim for %s lost by account %s", address, account_id)
                raise RegistryError(ErrorKind.ALREADY_CLAIMED, "email address already claimed", context)
            logger.info("Email %s added to account %s", address, account_id)
            return created

        if existing.account_id is None:
            with self._storage(context):
                claimed = self.store.claim_unowned(ctx, address, account_id, code)
            if claimed is None:
                logger.warning("Unowned email %s claimed concurrently", address)
                raise RegistryError(ErrorKind.ALREADY_CLAIMED, "email address already claimed", context)
            logger.info("Provisioned email %s claimed by account %s", address, account_id)
            return claimed

        if existing.account_id != account_id:
            raise RegistryError(ErrorKind.ALREADY_CLAIMED, "email address already claimed", context)

        if existing.verified:
            raise RegistryError(
                ErrorKind.ALREADY_VERIFIED, "email address already exists and is verified", context
            )

        with self._storage(context):
            updated = self.store.reissue_code(ctx, address, account_id, code)
        if updated is None:
            # Verified or removed between the read and the write
            with self._storage(context):
                current = self.store.get_email(ctx, address)
            if current is not None and current.verified:
                raise RegistryError(
                    ErrorKind.ALREADY_VERIFIED, "email address already exists and is verified", context
                )
            logger.warning("Email %s removed or reclaimed while re-issuing code", address)
            raise RegistryError(
                ErrorKind.ALREADY_CLAIMED, "email address changed while re-issuing code", context
            )
        logger.info("Verification code re-issued for %s", address)
        return updated

    def provision(self, ctx: RequestContext, address: str, code: str) -> EmailRecord:
        """
        Create an unowned record awaiting a future claim.

        Raises:
            RegistryError: ALREADY_CLAIMED if the address is already known, or INTERNAL
        """
        if not code:
            raise ValueError("verification code must not be empty")

        context = self._context(ctx, "provision", address=address)
        with self._storage(context):
            created = self.store.create_email(ctx, address, None, code)
        if created is None:
            raise RegistryError(ErrorKind.ALREADY_CLAIMED, "email address already exists", context)
        logger.info("Email %s provisioned", address)
        return created

    def get_code(self, ctx: RequestContext, address: str) -> str:
        """
        Return the stored verification code for out-of-band delivery.

        Only called right after a successful add, so a missing record is an
        internal inconsistency.

        Raises:
            RegistryError: INTERNAL if no record exists or storage fails
        """
        context = self._context(ctx, "get_code", address=address)
        with self._storage(context):
            record = self.store.get_email(ctx, address)
        if record is None:
            raise RegistryError(ErrorKind.INTERNAL, "email address not found", context)
        return record.verification_code

    def lookup_code(self, ctx: RequestContext, address: str, code: str) -> Account | None:
        """
        Find the account whose email record matches both address and code.

        Returns:
            Account with emails and authentication attached, or None when
            nothing matches (the normal wrong-code outcome)
        """
        context = self._context(ctx, "lookup_code", address=address)
        with self._storage(context):
            return self.store.find_account_by_code(ctx, address, code)

    def verify(self, ctx: RequestContext, account_id: UUID, address: str) -> None:
        """
        Mark the address verified for its owning account.

        The code must already have been checked with lookup_code.

        Raises:
            RegistryError: NOT_FOUND if the address does not exist or belongs
                to another account, INTERNAL on storage failure
        """
        context = self._context(ctx, "verify", address=address, account_id=account_id)
        with self._storage(context):
            affected = self.store.mark_verified(ctx, address, account_id)
        if affected == 0:
            raise RegistryError(ErrorKind.NOT_FOUND, "email address not found for this account", context)
        logger.info("Email %s verified for account %s", address, account_id)

    def lookup_account(self, ctx: RequestContext, address: str) -> Account | None:
        """Account owning the address (verified or not) with all edges, or None."""
        context = self._context(ctx, "lookup_account", address=address)
        with self._storage(context):
            return self.store.find_account_by_email(ctx, address)

    def remove(self, ctx: RequestContext, account_id: UUID, email_id: UUID) -> None:
        """
        Delete an email record owned by the account.

        Removing a record that does not exist or belongs to someone else is
        a silent no-op.
        """
        context = self._context(ctx, "remove", email_id=email_id, account_id=account_id)
        with self._storage(context):
            affected = self.store.delete_email(ctx, email_id, account_id)
        if affected == 0:
            logger.debug("Remove of email %s by account %s matched nothing", email_id, account_id)
        else:
            logger.info("Email %s removed from account %s", email_id, account_id)

    @staticmethod
    def _context(ctx: RequestContext, operation: str, **fields: Any) -> dict[str, Any]:
        return {**ctx.as_dict(), "operation": operation, **fields}

    @staticmethod
    @contextmanager
    def _storage(context: dict[str, Any]) -> Iterator[None]:
        """Re-classify storage failures as INTERNAL registry errors."""
        try:
            yield
        except StorageError as err:
            logger.exception("Storage failure during %s", context.get("operation"))
            raise RegistryError(ErrorKind.INTERNAL, str(err), context) from err
