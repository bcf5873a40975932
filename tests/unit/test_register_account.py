from __future__ import annotations

import asyncio
import threading

from src.application.use_cases.register_account import RegisterAccountUseCase
from src.domain.entities.role import RoleSet
from src.domain.errors import RestaurantExistsError
from src.domain.services.role_resolver import RoleResolver
from src.infrastructure.database.repositories.restaurant_repository import RestaurantRepository
from tests.fakes import FakeProfiles, FakeSessionStore

ROLES = RoleSet(roles=frozenset({"admin", "user"}), default="user")


class RecordingRestaurants(RestaurantRepository):
    def __init__(self) -> None:
        super().__init__(None)
        self.threads: list[int] = []

    def create(self, owner_id, name, location, image_url=None):
        self.threads.append(threading.get_ident())
        return super().create(owner_id, name, location, image_url)


def register(restaurants, role="admin", restaurant_name="Chez Marie"):
    resolver = RoleResolver(FakeSessionStore(), FakeProfiles(), ROLES)

    async def scenario():
        async with resolver:
            loop_thread = threading.get_ident()
            outcome, restaurant = await RegisterAccountUseCase(restaurants).execute(
                resolver,
                "chef@example.com",
                "secret123",
                role=role,
                restaurant_name=restaurant_name,
                location="Lyon",
            )
            return loop_thread, outcome, restaurant

    return asyncio.run(scenario())


def test_restaurant_is_created_off_the_event_loop():
    restaurants = RecordingRestaurants()
    loop_thread, outcome, restaurant = register(restaurants)

    assert restaurant.owner_id == outcome.identity
    assert restaurants.threads and loop_thread not in restaurants.threads


def test_customers_get_no_restaurant():
    restaurants = RecordingRestaurants()
    _, outcome, restaurant = register(restaurants, role="user")

    assert outcome.profile.role == "user"
    assert restaurant is None
    assert restaurants.threads == []


def test_restaurant_failure_keeps_the_account(caplog):
    class FailingRestaurants(RecordingRestaurants):
        def create(self, owner_id, name, location, image_url=None):
            raise RestaurantExistsError("taken")

    _, outcome, restaurant = register(FailingRestaurants())

    assert outcome.profile_created
    assert restaurant is None
    assert "Restaurant creation failed" in caplog.text
