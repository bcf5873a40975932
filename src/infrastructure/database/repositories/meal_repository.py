from __future__ import annotations

import uuid
from datetime import UTC, datetime

from supabase import Client

from src.domain.entities.meal import MealEntity
from src.infrastructure.database.postgres_client import get_postgres_client
from src.infrastructure.settings import supabase_disabled, use_local_db

# module-level in-memory store for disabled mode
_MEM_MEALS: dict[str, MealEntity] = {}


class MealRepository:
    def __init__(self, client: Client | None) -> None:
        self.client = client
        self.disabled = supabase_disabled()
        self.use_local_db = use_local_db()
        self.pg_client = get_postgres_client() if self.use_local_db else None

    def _row_to_entity(self, row: dict) -> MealEntity:
        created_at = row["created_at"]
        if isinstance(created_at, str):
            created_at = datetime.fromisoformat(created_at)
        updated_at = row.get("updated_at")
        if isinstance(updated_at, str):
            updated_at = datetime.fromisoformat(updated_at)
        return MealEntity(
            id=row["id"],
            restaurant_id=row["restaurant_id"],
            name=row["name"],
            price=float(row["price"]),
            created_at=created_at,
            description=row.get("description"),
            image_url=row.get("image_url"),
            is_available=row.get("is_available", True),
            updated_at=updated_at,
        )

    def create(
        self,
        restaurant_id: str,
        name: str,
        price: float,
        description: str | None = None,
        image_url: str | None = None,
        is_available: bool = True,
    ) -> MealEntity:
        now = datetime.now(UTC)

        # PostgreSQL mode
        if self.use_local_db and self.pg_client:
            try:
                query = """
                    INSERT INTO meals (
                        restaurant_id, name, description, price, image_url,
                        is_available, created_at, updated_at
                    ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                    RETURNING *
                """
                row = self.pg_client.execute_insert(
                    query,
                    (restaurant_id, name, description, price, image_url, is_available, now, now),
                )
                return self._row_to_entity(row)
            except Exception as exc:
                raise RuntimeError(f"PostgreSQL insert meal failed: {exc}") from exc

        # In-memory mode
        if self.disabled or self.client is None:
            entity = MealEntity(
                id=str(uuid.uuid4()),
                restaurant_id=restaurant_id,
                name=name,
                price=price,
                created_at=now,
                description=description,
                image_url=image_url,
                is_available=is_available,
                updated_at=now,
            )
            _MEM_MEALS[entity.id] = entity
            return entity

        # Supabase mode
        try:  # pragma: no cover - network
            data = {
                "restaurant_id": restaurant_id,
                "name": name,
                "description": description,
                "price": price,
                "image_url": image_url,
                "is_available": is_available,
                "created_at": now.isoformat(),
                "updated_at": now.isoformat(),
            }
            res = self.client.table("meals").insert(data).execute()
            return self._row_to_entity(res.data[0])
        except Exception as exc:
            raise RuntimeError(f"DB insert meal failed: {exc}") from exc

    def get(self, meal_id: str) -> MealEntity | None:
        # PostgreSQL mode
        if self.use_local_db and self.pg_client:
            row = self.pg_client.execute_one("SELECT * FROM meals WHERE id = %s", (meal_id,))
            return self._row_to_entity(row) if row else None

        # In-memory mode
        if self.disabled or self.client is None:
            return _MEM_MEALS.get(meal_id)

        # Supabase mode
        try:  # pragma: no cover - network
            res = self.client.table("meals").select("*").eq("id", meal_id).limit(1).execute()
            rows = res.data or []
            return self._row_to_entity(rows[0]) if rows else None
        except Exception as exc:
            raise RuntimeError(f"DB get meal failed: {exc}") from exc

    def list_by_restaurant(self, restaurant_id: str, only_available: bool = False) -> list[MealEntity]:
        """Meals of one restaurant, newest first."""
        # PostgreSQL mode
        if self.use_local_db and self.pg_client:
            query = "SELECT * FROM meals WHERE restaurant_id = %s"
            if only_available:
                query += " AND is_available"
            rows = self.pg_client.execute_many(query + " ORDER BY created_at DESC", (restaurant_id,))
            return [self._row_to_entity(row) for row in rows]

        # In-memory mode
        if self.disabled or self.client is None:
            meals = [
                m
                for m in _MEM_MEALS.values()
                if m.restaurant_id == restaurant_id and (m.is_available or not only_available)
            ]
            return sorted(meals, key=lambda m: m.created_at, reverse=True)

        # Supabase mode
        try:  # pragma: no cover - network
            q = self.client.table("meals").select("*").eq("restaurant_id", restaurant_id)
            if only_available:
                q = q.eq("is_available", True)
            res = q.order("created_at", desc=True).execute()
            return [self._row_to_entity(row) for row in res.data or []]
        except Exception as exc:
            raise RuntimeError(f"DB list meals failed: {exc}") from exc

    def list_available(self) -> list[MealEntity]:
        """Available meals across all restaurants, newest first."""
        # PostgreSQL mode
        if self.use_local_db and self.pg_client:
            rows = self.pg_client.execute_many(
                "SELECT * FROM meals WHERE is_available ORDER BY created_at DESC"
            )
            return [self._row_to_entity(row) for row in rows]

        # In-memory mode
        if self.disabled or self.client is None:
            meals = [m for m in _MEM_MEALS.values() if m.is_available]
            return sorted(meals, key=lambda m: m.created_at, reverse=True)

        # Supabase mode
        try:  # pragma: no cover - network
            res = (
                self.client.table("meals")
                .select("*")
                .eq("is_available", True)
                .order("created_at", desc=True)
                .execute()
            )
            return [self._row_to_entity(row) for row in res.data or []]
        except Exception as exc:
            raise RuntimeError(f"DB list meals failed: {exc}") from exc

    def delete(self, meal_id: str) -> bool:
        # PostgreSQL mode
        if self.use_local_db and self.pg_client:
            affected = self.pg_client.execute_update("DELETE FROM meals WHERE id = %s", (meal_id,))
            return affected > 0

        # In-memory mode
        if self.disabled or self.client is None:
            return _MEM_MEALS.pop(meal_id, None) is not None

        # Supabase mode
        try:  # pragma: no cover - network
            self.client.table("meals").delete().eq("id", meal_id).execute()
            return True
        except Exception:
            return False
