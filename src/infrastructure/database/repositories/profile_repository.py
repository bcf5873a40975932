from __future__ import annotations

import asyncio
from datetime import UTC, datetime

import psycopg2
from supabase import Client

from src.domain.entities.profile import ProfileEntity
from src.domain.errors import ProfileCreateError, ProfileLookupError
from src.infrastructure.database.postgres_client import get_postgres_client
from src.infrastructure.settings import supabase_disabled, use_local_db

# module-level in-memory store for disabled mode
_MEM_PROFILES: dict[str, ProfileEntity] = {}


class ProfileRepository:
    """One profile row per identity, carrying the role tag.

    The sync methods do the work; ``fetch`` and ``insert`` are the awaitable
    profile lookup used by the role resolver and run them in a worker thread.
    """

    def __init__(self, client: Client | None) -> None:
        self.client = client
        self.disabled = supabase_disabled()
        self.use_local_db = use_local_db()
        self.pg_client = get_postgres_client() if self.use_local_db else None

    def _row_to_entity(self, row: dict) -> ProfileEntity:
        created_at = row.get("created_at")
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)
        return ProfileEntity(
            id=row["id"],
            role=row["role"],
            display_name=row.get("display_name"),
            email=row.get("email"),
            created_at=created_at,
        )

    async def fetch(self, identity: str) -> ProfileEntity | None:
        return await asyncio.to_thread(self.get, identity)

    async def insert(
        self, identity: str, role: str, display_name: str | None, email: str | None
    ) -> ProfileEntity:
        return await asyncio.to_thread(self.create, identity, role, display_name, email)

    def get(self, identity: str) -> ProfileEntity | None:
        # PostgreSQL mode
        if self.use_local_db and self.pg_client:
            try:
                row = self.pg_client.execute_one("SELECT * FROM profiles WHERE id = %s", (identity,))
                return self._row_to_entity(row) if row else None
            except (psycopg2.Error, RuntimeError, KeyError, ValueError, TypeError) as exc:
                raise ProfileLookupError(f"PostgreSQL profile lookup failed: {exc!r}") from exc

        # In-memory mode
        if self.disabled or self.client is None:
            return _MEM_PROFILES.get(identity)

        # Supabase mode
        try:
            res = self.client.table("profiles").select("*").eq("id", identity).limit(1).execute()
            rows = res.data or []
            return self._row_to_entity(rows[0]) if rows else None
        except Exception as exc:
            raise ProfileLookupError(f"DB profile lookup failed: {exc!r}") from exc

    def create(
        self, identity: str, role: str, display_name: str | None, email: str | None
    ) -> ProfileEntity:
        now = datetime.now(UTC)

        # PostgreSQL mode
        if self.use_local_db and self.pg_client:
            try:
                query = """
                    INSERT INTO profiles (id, role, display_name, email, created_at)
                    VALUES (%s, %s, %s, %s, %s)
                    RETURNING *
                """
                row = self.pg_client.execute_insert(query, (identity, role, display_name, email, now))
                return self._row_to_entity(row)
            except (psycopg2.Error, RuntimeError) as exc:
                raise ProfileCreateError(f"PostgreSQL insert profile failed: {exc}") from exc

        # In-memory mode
        if self.disabled or self.client is None:
            if identity in _MEM_PROFILES:
                raise ProfileCreateError(f"Profile already exists for {identity}")
            entity = ProfileEntity(
                id=identity, role=role, display_name=display_name, email=email, created_at=now
            )
            _MEM_PROFILES[identity] = entity
            return entity

        # Supabase mode
        try:  # pragma: no cover - network
            data = {
                "id": identity,
                "role": role,
                "display_name": display_name,
                "email": email,
                "created_at": now.isoformat(),
            }
            res = self.client.table("profiles").insert(data).execute()
            return self._row_to_entity(res.data[0])
        except Exception as exc:
            raise ProfileCreateError(f"DB insert profile failed: {exc}") from exc

    def set_display_name(self, identity: str, name: str) -> ProfileEntity | None:
        # PostgreSQL mode
        if self.use_local_db and self.pg_client:
            try:
                row = self.pg_client.execute_one(
                    "UPDATE profiles SET display_name = %s WHERE id = %s RETURNING *",
                    (name, identity),
                )
            except (psycopg2.Error, RuntimeError) as exc:
                raise RuntimeError(f"PostgreSQL update profile failed: {exc}") from exc
            return self._row_to_entity(row) if row else None

        # In-memory mode
        if self.disabled or self.client is None:
            current = _MEM_PROFILES.get(identity)
            if current is None:
                return None
            updated = ProfileEntity(
                id=identity,
                role=current.role,
                display_name=name,
                email=current.email,
                created_at=current.created_at,
            )
            _MEM_PROFILES[identity] = updated
            return updated

        # Supabase mode
        try:  # pragma: no cover - network
            res = (
                self.client.table("profiles")
                .update({"display_name": name})
                .eq("id", identity)
                .execute()
            )
            rows = res.data or []
            return self._row_to_entity(rows[0]) if rows else None
        except Exception as exc:
            raise RuntimeError(f"DB update profile failed: {exc}") from exc
