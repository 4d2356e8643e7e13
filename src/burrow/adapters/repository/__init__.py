"""Repository adapters - Storage implementations."""

from .memory import InMemoryStore
from .postgres import PostgresStore, run_migrations

__all__ = ["InMemoryStore", "PostgresStore", "run_migrations"]
