from __future__ import annotations

from dataclasses import dataclass

from src.domain.entities.meal import MealEntity
from src.infrastructure.database.repositories.meal_repository import MealRepository
from src.infrastructure.database.repositories.restaurant_repository import RestaurantRepository


@dataclass
class AddMealUseCase:
    restaurants: RestaurantRepository
    meals: MealRepository

    def execute(
        self,
        owner_id: str,
        name: str,
        price: float,
        *,
        description: str | None = None,
        image_url: str | None = None,
        is_available: bool = True,
    ) -> MealEntity | None:
        """Add a meal to the admin's restaurant. None when they have no restaurant."""
        restaurant = self.restaurants.get_by_owner(owner_id)
        if restaurant is None:
            return None
        return self.meals.create(
            restaurant_id=restaurant.id,
            name=name.strip(),
            price=price,
            description=description or None,
            image_url=image_url or None,
            is_available=is_available,
        )


@dataclass
class DeleteMealUseCase:
    restaurants: RestaurantRepository
    meals: MealRepository

    def execute(self, owner_id: str, meal_id: str) -> bool:
        # only meals of the admin's own restaurant
        restaurant = self.restaurants.get_by_owner(owner_id)
        meal = self.meals.get(meal_id)
        if restaurant is None or meal is None or meal.restaurant_id != restaurant.id:
            return False
        return self.meals.delete(meal_id)
