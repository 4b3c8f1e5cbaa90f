"""
In-memory store adapter - Implements the EmailStore protocol.

Thread-safe, process-local storage with the same conditional write
semantics as the PostgreSQL adapter: a unique address key, guarded updates
that report zero matches, and owner-scoped deletes. Used for development
(storage_backend=memory) and by the unit tests.
"""

import threading
import uuid
from dataclasses import replace
from uuid import UUID

from src.domain.context import RequestContext
from src.domain.ports import Account, AuthenticationMethod, EmailRecord, Role


class InMemoryEmailStore:
    """
    Implements EmailStore protocol with dictionaries guarded by a lock.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._emails: dict[str, EmailRecord] = {}
        self._accounts: dict[UUID, tuple[str, str]] = {}
        # account id -> (method, secret)
        self._authentication: dict[UUID, list[tuple[AuthenticationMethod, str]]] = {}
        self._roles: dict[UUID, list[Role]] = {}
        self._tags: dict[UUID, list[str]] = {}

    def add_account(self, handle: str, name: str | None = None, account_id: UUID | None = None) -> UUID:
        """Seed an account and return its id."""
        account_id = account_id or uuid.uuid4()
        with self._lock:
            self._accounts[account_id] = (handle, name or handle)
            self._authentication.setdefault(account_id, [])
            self._roles.setdefault(account_id, [])
            self._tags.setdefault(account_id, [])
        return account_id

    def add_password(self, account_id: UUID, password_hash: str) -> None:
        """Attach a password authentication method holding a bcrypt hash."""
        with self._lock:
            handle = self._accounts[account_id][0]
            method = AuthenticationMethod(id=uuid.uuid4(), service="password", identifier=handle)
            self._authentication[account_id].append((method, password_hash))

    def add_role(self, account_id: UUID, name: str) -> None:
        with self._lock:
            self._roles[account_id].append(Role(id=uuid.uuid4(), name=name))

    def add_tag(self, account_id: UUID, name: str) -> None:
        with self._lock:
            self._tags[account_id].append(name)

    def get_email(self, ctx: RequestContext, address: str) -> EmailRecord | None:
        ctx.check()
        with self._lock:
            return self._emails.get(address)

    def create_email(
        self, ctx: RequestContext, address: str, account_id: UUID | None, code: str
    ) -> EmailRecord | None:
        ctx.check()
        with self._lock:
            if address in self._emails:
                return None
            record = EmailRecord(
                id=uuid.uuid4(),
                address=address,
                account_id=account_id,
                verification_code=code,
                verified=False,
            )
            self._emails[address] = record
            return record

    def claim_unowned(
        self, ctx: RequestContext, address: str, account_id: UUID, code: str
    ) -> EmailRecord | None:
        ctx.check()
        with self._lock:
            record = self._emails.get(address)
            if record is None or record.account_id is not None:
                return None
            record = replace(record, account_id=account_id, verification_code=code, verified=False)
            self._emails[address] = record
            return record

    def reissue_code(
        self, ctx: RequestContext, address: str, account_id: UUID, code: str
    ) -> EmailRecord | None:
        ctx.check()
        with self._lock:
            record = self._emails.get(address)
            if record is None or record.account_id != account_id or record.verified:
                return None
            record = replace(record, verification_code=code)
            self._emails[address] = record
            return record

    def mark_verified(self, ctx: RequestContext, address: str, account_id: UUID) -> int:
        ctx.check()
        with self._lock:
            record = self._emails.get(address)
            if record is None or record.account_id != account_id:
                return 0
            self._emails[address] = replace(record, verified=True)
            return 1

    def delete_email(self, ctx: RequestContext, email_id: UUID, account_id: UUID) -> int:
        ctx.check()
        with self._lock:
            for address, record in self._emails.items():
                if record.id == email_id and record.account_id == account_id:
                    del self._emails[address]
                    return 1
            return 0

    def find_account_by_code(self, ctx: RequestContext, address: str, code: str) -> Account | None:
        ctx.check()
        with self._lock:
            record = self._emails.get(address)
            if record is None or record.account_id is None or record.verification_code != code:
                return None
            return self._build_account(record.account_id, with_roles=False)

    def find_account_by_email(self, ctx: RequestContext, address: str) -> Account | None:
        ctx.check()
        with self._lock:
            record = self._emails.get(address)
            if record is None or record.account_id is None:
                return None
            return self._build_account(record.account_id, with_roles=True)

    def get_password_credential(self, ctx: RequestContext, handle: str) -> tuple[UUID, str] | None:
        ctx.check()
        with self._lock:
            for account_id, (account_handle, _) in self._accounts.items():
                if account_handle != handle:
                    continue
                for method, secret in self._authentication[account_id]:
                    if method.service == "password":
                        return account_id, secret
            return None

    def ping(self, ctx: RequestContext) -> None:
        ctx.check()

    def _build_account(self, account_id: UUID, with_roles: bool) -> Account:
        handle, name = self._accounts[account_id]
        emails = [record for record in self._emails.values() if record.account_id == account_id]
        return Account(
            id=account_id,
            handle=handle,
            name=name,
            emails=emails,
            authentication=[method for method, _ in self._authentication[account_id]],
            roles=list(self._roles[account_id]) if with_roles else [],
            tags=list(self._tags[account_id]) if with_roles else [],
        )
