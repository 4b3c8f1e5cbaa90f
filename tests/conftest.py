"""
Shared test fixtures and configuration.

This module provides pytest fixtures for:
- An in-memory email store seeded with accounts
- Registry and request context instances
- A PostgreSQL pool and store for integration and adversarial tests
"""

import uuid
from collections.abc import Callable, Generator
from uuid import UUID

import psycopg
import pytest
from psycopg_pool import ConnectionPool

from src.adapters.repository.memory import InMemoryEmailStore
from src.adapters.repository.postgres import PostgresEmailStore, run_migrations
from src.config.settings import get_settings
from src.domain.context import RequestContext
from src.domain.email_registry import EmailRegistry


@pytest.fixture
def store() -> InMemoryEmailStore:
    """Create an empty in-memory store for each test."""
    return InMemoryEmailStore()


@pytest.fixture
def registry(store: InMemoryEmailStore) -> EmailRegistry:
    """Create a registry bound to the in-memory store."""
    return EmailRegistry(store=store)


@pytest.fixture
def ctx() -> RequestContext:
    """Request context without a deadline."""
    return RequestContext()


@pytest.fixture
def alice(store: InMemoryEmailStore) -> UUID:
    """Seeded account id."""
    return store.add_account("alice", "Alice")


@pytest.fixture
def bob(store: InMemoryEmailStore) -> UUID:
    """Second seeded account id."""
    return store.add_account("bob", "Bob")


@pytest.fixture(scope="session")
def pool() -> Generator[ConnectionPool, None, None]:
    """
    Create connection pool and apply migrations.

    Skips the requesting test when the configured database is unreachable,
    so the rest of the suite runs without a database.
    """
    settings = get_settings()
    try:
        with psycopg.connect(settings.database_url, connect_timeout=2):
            pass
    except psycopg.OperationalError as err:
        pytest.skip(f"PostgreSQL unavailable: {err}")

    pool = ConnectionPool(conninfo=settings.database_url, min_size=1, max_size=20, open=True)
    run_migrations(pool)
    yield pool
    pool.close()


@pytest.fixture
def pg_store(pool: ConnectionPool) -> PostgresEmailStore:
    """Store over a clean database."""
    with pool.connection() as conn:
        conn.execute("DELETE FROM emails")
        conn.execute("DELETE FROM accounts")
        conn.execute("DELETE FROM roles")
        conn.execute("DELETE FROM tags")
    return PostgresEmailStore(pool)


@pytest.fixture
def make_account(pool: ConnectionPool) -> Callable[..., UUID]:
    """Factory inserting an account, optionally with a password authentication."""

    def create_account(handle: str, password_hash: str | None = None) -> UUID:
        account_id = uuid.uuid4()
        with pool.connection() as conn:
            conn.execute(
                "INSERT INTO accounts (id, handle, name) VALUES (%s, %s, %s)",
                (account_id, handle, handle.title()),
            )
            if password_hash is not None:
                conn.execute(
                    """INSERT INTO authentications (id, account_id, service, identifier, token)
                       VALUES (%s, %s, 'password', %s, %s)""",
                    (uuid.uuid4(), account_id, handle, password_hash),
                )
        return account_id

    return create_account
