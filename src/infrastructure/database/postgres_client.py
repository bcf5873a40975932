"""PostgreSQL client for running against a local database instead of Supabase.

Enabled with USE_LOCAL_DB=1. Connection settings come from the POSTGRES_*
environment variables.
"""
from __future__ import annotations

import os
from contextlib import contextmanager
from typing import Any, Generator

import psycopg2
from psycopg2 import pool
from psycopg2.extras import RealDictCursor

from src.infrastructure.settings import use_local_db


class PostgresClient:
    """Thread-safe connection pool; repositories call it from worker threads."""

    def __init__(self) -> None:
        self.enabled = use_local_db()
        self._pool: pool.ThreadedConnectionPool | None = None
        if self.enabled:
            try:
                self._pool = pool.ThreadedConnectionPool(
                    minconn=1,
                    maxconn=int(os.getenv("POSTGRES_POOL_SIZE", "10")),
                    host=os.getenv("POSTGRES_HOST", "localhost"),
                    port=int(os.getenv("POSTGRES_PORT", "5432")),
                    database=os.getenv("POSTGRES_DB", "mealhub"),
                    user=os.getenv("POSTGRES_USER", "mealhub"),
                    password=os.getenv("POSTGRES_PASSWORD", "mealhub_dev_password"),
                )
            except psycopg2.Error as exc:  # pragma: no cover
                raise RuntimeError(f"Failed to initialize PostgreSQL connection pool: {exc}") from exc

    @contextmanager
    def get_cursor(self, dict_cursor: bool = True) -> Generator[Any, None, None]:
        """Yield a cursor inside a transaction that commits on success.

        Raises:
            RuntimeError: If the local database is not enabled.
        """
        if not self.enabled or self._pool is None:
            raise RuntimeError("Local PostgreSQL database is not enabled")
        conn = self._pool.getconn()
        try:
            cursor = conn.cursor(cursor_factory=RealDictCursor if dict_cursor else None)
            try:
                yield cursor
            finally:
                cursor.close()
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            self._pool.putconn(conn)

    def execute_one(self, query: str, params: tuple = ()) -> dict[str, Any] | None:
        with self.get_cursor() as cursor:
            cursor.execute(query, params)
            result = cursor.fetchone()
            return dict(result) if result else None

    def execute_many(self, query: str, params: tuple = ()) -> list[dict[str, Any]]:
        with self.get_cursor() as cursor:
            cursor.execute(query, params)
            return [dict(row) for row in cursor.fetchall()]

    def execute_insert(self, query: str, params: tuple = ()) -> dict[str, Any]:
        """Run an INSERT/UPDATE ... RETURNING and return the affected row."""
        with self.get_cursor() as cursor:
            cursor.execute(query, params)
            result = cursor.fetchone()
            if not result:
                raise RuntimeError("Query did not return a row")
            return dict(result)

    def execute_update(self, query: str, params: tuple = ()) -> int:
        """Run an UPDATE or DELETE and return the number of affected rows."""
        with self.get_cursor(dict_cursor=False) as cursor:
            cursor.execute(query, params)
            return cursor.rowcount

_POSTGRES_CLIENT: PostgresClient | None = None


def get_postgres_client() -> PostgresClient | None:
    global _POSTGRES_CLIENT
    if not use_local_db():
        return None
    if _POSTGRES_CLIENT is None:
        _POSTGRES_CLIENT = PostgresClient()
    return _POSTGRES_CLIENT
