"""
Password authentication - Resolve the calling account from credentials.

Used by the HTTP layer to find out which account is adding or removing
an email address.

Timing oracle prevention: bcrypt.checkpw always runs, against a
pre-computed dummy hash when the handle is unknown, so response time does
not reveal whether an account exists.
"""

import logging
from dataclasses import dataclass
from uuid import UUID

import bcrypt

from .context import RequestContext
from .exceptions import ErrorKind, RegistryError, StorageError
from .ports import EmailStore

logger = logging.getLogger(__name__)

# Hash of "dummy_password_for_timing_safety" with cost factor 10.
_DUMMY_BCRYPT_HASH = bcrypt.hashpw(b"dummy_password_for_timing_safety", bcrypt.gensalt(10)).decode()


def hash_password(password: str, rounds: int = 10) -> str:
    """Hash a password with bcrypt (cost factor >= 10)."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=rounds)).decode()


@dataclass
class PasswordAuthenticator:
    """Checks account handle and password against the store."""

    store: EmailStore

    def authenticate(self, ctx: RequestContext, handle: str, password: str) -> UUID | None:
        """
        Authenticate an account by handle and password.

        Returns:
            Account id on success, None on unknown handle or wrong password

        Raises:
            RegistryError: INTERNAL on storage failure
        """
        try:
            credential = self.store.get_password_credential(ctx, handle)
        except StorageError as err:
            raise RegistryError(
                ErrorKind.INTERNAL, str(err), {**ctx.as_dict(), "operation": "authenticate"}
            ) from err

        stored_hash = credential[1] if credential is not None else _DUMMY_BCRYPT_HASH
        password_valid = bcrypt.checkpw(password.encode(), stored_hash.encode())

        if credential is None or not password_valid:
            logger.info("Authentication failed for handle %s", handle)
            return None
        return credential[0]
