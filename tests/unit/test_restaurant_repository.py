from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest

from src.domain.errors import RestaurantExistsError
from src.infrastructure.database.repositories.restaurant_repository import RestaurantRepository


@pytest.fixture()
def repo() -> RestaurantRepository:
    return RestaurantRepository(None)


def test_one_restaurant_per_owner(repo):
    first = repo.create("admin-1", "Chez Marie", "Lyon")
    with pytest.raises(RestaurantExistsError):
        repo.create("admin-1", "Chez Paul", "Paris")
    assert repo.get_by_owner("admin-1") == first
    assert repo.create("admin-2", "Chez Paul", "Paris").owner_id == "admin-2"


def test_concurrent_creates_keep_one_restaurant(repo):
    def attempt(i: int) -> bool:
        try:
            repo.create("admin-1", f"Place {i}", "Lyon")
        except RestaurantExistsError:
            return False
        return True

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(attempt, range(16)))

    assert results.count(True) == 1
    assert [r.owner_id for r in repo.list_all()] == ["admin-1"]
