"""Repository adapters - Storage implementations."""

from .memory import InMemoryEmailStore
from .postgres import PostgresEmailStore, run_migrations

__all__ = ["InMemoryEmailStore", "PostgresEmailStore", "run_migrations"]
