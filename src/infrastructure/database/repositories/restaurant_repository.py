from __future__ import annotations

import threading
import uuid
from datetime import UTC, datetime

from psycopg2 import errors as pg_errors
from supabase import Client

from src.domain.entities.restaurant import RestaurantEntity
from src.domain.errors import RestaurantExistsError
from src.infrastructure.database.postgres_client import get_postgres_client
from src.infrastructure.settings import supabase_disabled, use_local_db

# module-level in-memory store for disabled mode
_MEM_RESTAURANTS: dict[str, RestaurantEntity] = {}
_MEM_LOCK = threading.Lock()

# Postgres error code for a unique constraint violation (owner_id is unique)
_UNIQUE_VIOLATION = "23505"


class RestaurantRepository:
    def __init__(self, client: Client | None) -> None:
        self.client = client
        self.disabled = supabase_disabled()
        self.use_local_db = use_local_db()
        self.pg_client = get_postgres_client() if self.use_local_db else None

    def _row_to_entity(self, row: dict) -> RestaurantEntity:
        created_at = row["created_at"]
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)
        return RestaurantEntity(
            id=row["id"],
            owner_id=row.get("owner_id"),
            name=row["name"],
            location=row["location"],
            created_at=created_at,
            image_url=row.get("image_url"),
            rating=float(row.get("rating") or 0.0),
        )

    def create(
        self, owner_id: str, name: str, location: str, image_url: str | None = None
    ) -> RestaurantEntity:
        now = datetime.now(UTC)

        # PostgreSQL mode
        if self.use_local_db and self.pg_client:
            try:
                query = """
                    INSERT INTO restaurants (owner_id, name, location, image_url, rating, created_at)
                    VALUES (%s, %s, %s, %s, 0, %s)
                    RETURNING *
                """
                row = self.pg_client.execute_insert(query, (owner_id, name, location, image_url, now))
                return self._row_to_entity(row)
            except pg_errors.UniqueViolation as exc:
                raise RestaurantExistsError(f"Restaurant already exists for {owner_id}") from exc
            except Exception as exc:
                raise RuntimeError(f"PostgreSQL insert restaurant failed: {exc}") from exc

        # In-memory mode
        if self.disabled or self.client is None:
            with _MEM_LOCK:
                if any(r.owner_id == owner_id for r in _MEM_RESTAURANTS.values()):
                    raise RestaurantExistsError(f"Restaurant already exists for {owner_id}")
                entity = RestaurantEntity(
                    id=str(uuid.uuid4()),
                    owner_id=owner_id,
                    name=name,
                    location=location,
                    created_at=now,
                    image_url=image_url,
                )
                _MEM_RESTAURANTS[entity.id] = entity
            return entity

        # Supabase mode
        try:  # pragma: no cover - network
            data = {
                "owner_id": owner_id,
                "name": name,
                "location": location,
                "image_url": image_url,
                "rating": 0,
                "created_at": now.isoformat(),
            }
            res = self.client.table("restaurants").insert(data).execute()
            return self._row_to_entity(res.data[0])
        except Exception as exc:
            if getattr(exc, "code", None) == _UNIQUE_VIOLATION:
                raise RestaurantExistsError(f"Restaurant already exists for {owner_id}") from exc
            raise RuntimeError(f"DB insert restaurant failed: {exc}") from exc

    def get(self, restaurant_id: str) -> RestaurantEntity | None:
        # PostgreSQL mode
        if self.use_local_db and self.pg_client:
            row = self.pg_client.execute_one("SELECT * FROM restaurants WHERE id = %s", (restaurant_id,))
            return self._row_to_entity(row) if row else None

        # In-memory mode
        if self.disabled or self.client is None:
            return _MEM_RESTAURANTS.get(restaurant_id)

        # Supabase mode
        try:  # pragma: no cover - network
            res = self.client.table("restaurants").select("*").eq("id", restaurant_id).limit(1).execute()
            rows = res.data or []
            return self._row_to_entity(rows[0]) if rows else None
        except Exception as exc:
            raise RuntimeError(f"DB get restaurant failed: {exc}") from exc

    def get_by_owner(self, owner_id: str) -> RestaurantEntity | None:
        # PostgreSQL mode
        if self.use_local_db and self.pg_client:
            row = self.pg_client.execute_one(
                "SELECT * FROM restaurants WHERE owner_id = %s ORDER BY created_at LIMIT 1",
                (owner_id,),
            )
            return self._row_to_entity(row) if row else None

        # In-memory mode
        if self.disabled or self.client is None:
            owned = [r for r in _MEM_RESTAURANTS.values() if r.owner_id == owner_id]
            return min(owned, key=lambda r: r.created_at) if owned else None

        # Supabase mode
        try:  # pragma: no cover - network
            res = (
                self.client.table("restaurants")
                .select("*")
                .eq("owner_id", owner_id)
                .order("created_at")
                .limit(1)
                .execute()
            )
            rows = res.data or []
            return self._row_to_entity(rows[0]) if rows else None
        except Exception as exc:
            raise RuntimeError(f"DB get restaurant failed: {exc}") from exc

    def list_all(self) -> list[RestaurantEntity]:
        """All restaurants, newest first."""
        # PostgreSQL mode
        if self.use_local_db and self.pg_client:
            rows = self.pg_client.execute_many("SELECT * FROM restaurants ORDER BY created_at DESC")
            return [self._row_to_entity(row) for row in rows]

        # In-memory mode
        if self.disabled or self.client is None:
            return sorted(_MEM_RESTAURANTS.values(), key=lambda r: r.created_at, reverse=True)

        # Supabase mode
        try:  # pragma: no cover - network
            res = self.client.table("restaurants").select("*").order("created_at", desc=True).execute()
            return [self._row_to_entity(row) for row in res.data or []]
        except Exception as exc:
            raise RuntimeError(f"DB list restaurants failed: {exc}") from exc

    def update(self, restaurant_id: str, name: str, location: str) -> RestaurantEntity | None:
        # PostgreSQL mode
        if self.use_local_db and self.pg_client:
            row = self.pg_client.execute_one(
                "UPDATE restaurants SET name = %s, location = %s WHERE id = %s RETURNING *",
                (name, location, restaurant_id),
            )
            return self._row_to_entity(row) if row else None

        # In-memory mode
        if self.disabled or self.client is None:
            current = _MEM_RESTAURANTS.get(restaurant_id)
            if current is None:
                return None
            updated = RestaurantEntity(
                id=current.id,
                owner_id=current.owner_id,
                name=name,
                location=location,
                created_at=current.created_at,
                image_url=current.image_url,
                rating=current.rating,
            )
            _MEM_RESTAURANTS[restaurant_id] = updated
            return updated

        # Supabase mode
        try:  # pragma: no cover - network
            res = (
                self.client.table("restaurants")
                .update({"name": name, "location": location})
                .eq("id", restaurant_id)
                .execute()
            )
            rows = res.data or []
            return self._row_to_entity(rows[0]) if rows else None
        except Exception as exc:
            raise RuntimeError(f"DB update restaurant failed: {exc}") from exc
