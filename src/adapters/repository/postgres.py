"""
PostgreSQL store adapter - Implements the EmailStore protocol.

This module provides the PostgreSQL implementation of the domain's
storage port using psycopg3 with raw SQL.

Concurrency Design:
-------------------
No method reads a row and then writes it unconditionally. Each write is a
single statement whose predicate carries the precondition:

1. **create_email**: INSERT ... ON CONFLICT (email_address) DO NOTHING.
   The UNIQUE constraint serializes concurrent creates; the loser gets no
   row back.

2. **claim_unowned**: UPDATE ... WHERE account_id IS NULL. Under READ
   COMMITTED a concurrent update blocks on the row lock and re-evaluates the
   predicate against the committed owner, so only one claimer matches.

3. **reissue_code / mark_verified / delete_email**: predicates include the
   owner, so a request can only touch records its account owns.

Request deadlines bound both the wait for a pooled connection and, via
statement_timeout, each statement; an expired statement is cancelled by the
server and the transaction rolls back. Cancelling the request sends a cancel
to the server for the statement in flight.
"""

import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from uuid import UUID

import psycopg
from psycopg_pool import ConnectionPool, PoolTimeout

from src.domain.context import RequestContext
from src.domain.exceptions import DeadlineExceeded, StorageError
from src.domain.ports import Account, AuthenticationMethod, EmailRecord, Role

logger = logging.getLogger(__name__)

_EMAIL_COLUMNS = "id, email_address, account_id, verification_code, verified"


def _map_email(row: tuple) -> EmailRecord:
    return EmailRecord(
        id=row[0],
        address=row[1],
        account_id=row[2],
        verification_code=row[3],
        verified=row[4],
    )


class PostgresEmailStore:
    """
    Implements EmailStore protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    All SQL uses parameterized queries for security.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        """
        Initialize store with connection pool.

        Args:
            pool: psycopg3 ConnectionPool for database connections
        """
        self._pool = pool

    @contextmanager
    def _transaction(self, ctx: RequestContext) -> Iterator[psycopg.Connection]:
        """
        Yield a pooled connection inside a transaction bounded by the request deadline.

        The pool commits on clean exit and rolls back on error. Driver errors
        are raised as StorageError; running out of time or being cancelled is
        raised as DeadlineExceeded.
        """
        ctx.check()
        # None falls back to the pool's own timeout
        wait = ctx.remaining()
        try:
            with self._pool.connection(timeout=wait) as conn:
                unregister = ctx.on_cancel(conn.cancel)
                try:
                    remaining = ctx.remaining()
                    if remaining is not None:
                        timeout_ms = max(1, int(remaining * 1000))
                        conn.execute(
                            "SELECT set_config('statement_timeout', %s, true)", (str(timeout_ms),)
                        )
                    yield conn
                finally:
                    unregister()
        except PoolTimeout as err:
            if wait is None:
                raise StorageError(f"{type(err).__name__}: {err}") from err
            raise DeadlineExceeded(
                f"request {ctx.request_id} deadline exceeded waiting for a connection"
            ) from err
        except psycopg.errors.QueryCanceled as err:
            reason = "cancelled" if ctx.cancelled() else "deadline exceeded"
            raise DeadlineExceeded(f"request {ctx.request_id} {reason}") from err
        except psycopg.Error as err:
            raise StorageError(f"{type(err).__name__}: {err}") from err

    def get_email(self, ctx: RequestContext, address: str) -> EmailRecord | None:
        sql = f"SELECT {_EMAIL_COLUMNS} FROM emails WHERE email_address = %s"

        with self._transaction(ctx) as conn, conn.cursor() as cursor:
            cursor.execute(sql, (address,))
            row = cursor.fetchone()

        return _map_email(row) if row is not None else None

    def create_email(
        self, ctx: RequestContext, address: str, account_id: UUID | None, code: str
    ) -> EmailRecord | None:
        """
        Insert a new record, relying on the UNIQUE constraint for races.

        Returns:
            Created record, or None if the address already exists
        """
        sql = f"""
            INSERT INTO emails (id, account_id, email_address, verification_code, verified)
            VALUES (%s, %s, %s, %s, FALSE)
            ON CONFLICT (email_address) DO NOTHING
            RETURNING {_EMAIL_COLUMNS}
        """

        with self._transaction(ctx) as conn, conn.cursor() as cursor:
            cursor.execute(sql, (uuid.uuid4(), account_id, address, code))
            row = cursor.fetchone()

        return _map_email(row) if row is not None else None

    def claim_unowned(
        self, ctx: RequestContext, address: str, account_id: UUID, code: str
    ) -> EmailRecord | None:
        sql = f"""
            UPDATE emails
            SET account_id = %s, verification_code = %s, verified = FALSE
            WHERE email_address = %s AND account_id IS NULL
            RETURNING {_EMAIL_COLUMNS}
        """

        with self._transaction(ctx) as conn, conn.cursor() as cursor:
            cursor.execute(sql, (account_id, code, address))
            row = cursor.fetchone()

        return _map_email(row) if row is not None else None

    def reissue_code(
        self, ctx: RequestContext, address: str, account_id: UUID, code: str
    ) -> EmailRecord | None:
        sql = f"""
            UPDATE emails
            SET verification_code = %s
            WHERE email_address = %s AND account_id = %s AND verified = FALSE
            RETURNING {_EMAIL_COLUMNS}
        """

        with self._transaction(ctx) as conn, conn.cursor() as cursor:
            cursor.execute(sql, (code, address, account_id))
            row = cursor.fetchone()

        return _map_email(row) if row is not None else None

    def mark_verified(self, ctx: RequestContext, address: str, account_id: UUID) -> int:
        sql = """
            UPDATE emails
            SET verified = TRUE
            WHERE email_address = %s AND account_id = %s
        """

        with self._transaction(ctx) as conn, conn.cursor() as cursor:
            cursor.execute(sql, (address, account_id))
            return cursor.rowcount

    def delete_email(self, ctx: RequestContext, email_id: UUID, account_id: UUID) -> int:
        sql = "DELETE FROM emails WHERE id = %s AND account_id = %s"

        with self._transaction(ctx) as conn, conn.cursor() as cursor:
            cursor.execute(sql, (email_id, account_id))
            return cursor.rowcount

    def find_account_by_code(self, ctx: RequestContext, address: str, code: str) -> Account | None:
        sql = """
            SELECT a.id, a.handle, a.name
            FROM accounts a
            JOIN emails e ON e.account_id = a.id
            WHERE e.email_address = %s AND e.verification_code = %s
        """

        with self._transaction(ctx) as conn, conn.cursor() as cursor:
            cursor.execute(sql, (address, code))
            row = cursor.fetchone()
            if row is None:
                return None
            return Account(
                id=row[0],
                handle=row[1],
                name=row[2],
                emails=self._load_emails(cursor, row[0]),
                authentication=self._load_authentication(cursor, row[0]),
            )

    def find_account_by_email(self, ctx: RequestContext, address: str) -> Account | None:
        sql = """
            SELECT a.id, a.handle, a.name
            FROM accounts a
            JOIN emails e ON e.account_id = a.id
            WHERE e.email_address = %s
        """

        with self._transaction(ctx) as conn, conn.cursor() as cursor:
            cursor.execute(sql, (address,))
            row = cursor.fetchone()
            if row is None:
                return None
            return Account(
                id=row[0],
                handle=row[1],
                name=row[2],
                emails=self._load_emails(cursor, row[0]),
                authentication=self._load_authentication(cursor, row[0]),
                roles=self._load_roles(cursor, row[0]),
                tags=self._load_tags(cursor, row[0]),
            )

    def get_password_credential(self, ctx: RequestContext, handle: str) -> tuple[UUID, str] | None:
        sql = """
            SELECT a.id, au.token
            FROM accounts a
            JOIN authentications au ON au.account_id = a.id
            WHERE a.handle = %s AND au.service = 'password'
        """

        with self._transaction(ctx) as conn, conn.cursor() as cursor:
            cursor.execute(sql, (handle,))
            row = cursor.fetchone()

        return (row[0], row[1]) if row is not None else None

    def ping(self, ctx: RequestContext) -> None:
        with self._transaction(ctx) as conn:
            conn.execute("SELECT 1")

    @staticmethod
    def _load_emails(cursor: psycopg.Cursor, account_id: UUID) -> list[EmailRecord]:
        cursor.execute(
            f"SELECT {_EMAIL_COLUMNS} FROM emails WHERE account_id = %s ORDER BY created_at, id",
            (account_id,),
        )
        return [_map_email(row) for row in cursor.fetchall()]

    @staticmethod
    def _load_authentication(cursor: psycopg.Cursor, account_id: UUID) -> list[AuthenticationMethod]:
        cursor.execute(
            """
            SELECT id, service, identifier FROM authentications
            WHERE account_id = %s ORDER BY created_at, id
            """,
            (account_id,),
        )
        return [
            AuthenticationMethod(id=row[0], service=row[1], identifier=row[2])
            for row in cursor.fetchall()
        ]

    @staticmethod
    def _load_roles(cursor: psycopg.Cursor, account_id: UUID) -> list[Role]:
        cursor.execute(
            """
            SELECT r.id, r.name FROM roles r
            JOIN account_roles ar ON ar.role_id = r.id
            WHERE ar.account_id = %s ORDER BY r.name
            """,
            (account_id,),
        )
        return [Role(id=row[0], name=row[1]) for row in cursor.fetchall()]

    @staticmethod
    def _load_tags(cursor: psycopg.Cursor, account_id: UUID) -> list[str]:
        cursor.execute(
            """
            SELECT t.name FROM tags t
            JOIN account_tags act ON act.tag_id = t.id
            WHERE act.account_id = %s ORDER BY t.name
            """,
            (account_id,),
        )
        return [row[0] for row in cursor.fetchall()]


def run_migrations(pool: ConnectionPool) -> None:
    """
    Execute all SQL migration files from the migrations directory.

    Migrations are executed in sorted order (alphabetically by filename).
    Each migration should be idempotent (use IF NOT EXISTS, etc.).

    Args:
        pool: psycopg3 ConnectionPool instance
    """
    # Structure: src/adapters/repository/postgres.py -> migrations/
    migrations_dir = Path(__file__).parent.parent.parent.parent / "migrations"

    if not migrations_dir.exists():
        logger.warning("Migrations directory not found: %s", migrations_dir)
        return

    sql_files = sorted(migrations_dir.glob("*.sql"))

    if not sql_files:
        logger.info("No migration files found")
        return

    logger.info("Running %d migration(s)", len(sql_files))

    for sql_file in sql_files:
        logger.info("Executing migration: %s", sql_file.name)
        try:
            sql_content = sql_file.read_text()

            with pool.connection() as conn:
                conn.execute(sql_content)

            logger.info("Migration complete: %s", sql_file.name)
        except psycopg.Error as e:
            logger.error("Migration failed: %s - %s", sql_file.name, e)
            raise RuntimeError(f"Database migration failed: {sql_file.name}") from e
