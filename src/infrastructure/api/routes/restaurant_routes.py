from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException

from src.application.dtos.restaurant_dto import (
    ListMealsResponse,
    ListRestaurantsResponse,
    MealOut,
    RestaurantOut,
)
from src.infrastructure.api.dependencies import get_meal_repo, get_restaurant_repo
from src.infrastructure.database.repositories.meal_repository import MealRepository
from src.infrastructure.database.repositories.restaurant_repository import RestaurantRepository

router = APIRouter(
    prefix="/restaurants",
    tags=["Restaurants"],
    responses={404: {"description": "Not Found - Restaurant does not exist"}},
)


@router.get(
    "",
    response_model=ListRestaurantsResponse,
    summary="List Restaurants",
    description="Browse all restaurants, newest first. **Authentication required**: No",
)
def list_restaurants(restaurants: RestaurantRepository = Depends(get_restaurant_repo)):
    """List restaurants."""
    return ListRestaurantsResponse(
        restaurants=[RestaurantOut.from_entity(r) for r in restaurants.list_all()]
    )


@router.get(
    "/{restaurant_id}",
    response_model=RestaurantOut,
    summary="Get Restaurant",
)
def get_restaurant(restaurant_id: str, restaurants: RestaurantRepository = Depends(get_restaurant_repo)):
    r = restaurants.get(restaurant_id)
    if r is None:
        raise HTTPException(status_code=404, detail="Restaurant not found")
    return RestaurantOut.from_entity(r)


@router.get(
    "/{restaurant_id}/meals",
    response_model=ListMealsResponse,
    summary="List Restaurant Meals",
    description="Available meals of one restaurant, newest first. **Authentication required**: No",
)
def list_restaurant_meals(
    restaurant_id: str,
    restaurants: RestaurantRepository = Depends(get_restaurant_repo),
    meals: MealRepository = Depends(get_meal_repo),
):
    """List the available meals of a restaurant."""
    if restaurants.get(restaurant_id) is None:
        raise HTTPException(status_code=404, detail="Restaurant not found")
    items = meals.list_by_restaurant(restaurant_id, only_available=True)
    return ListMealsResponse(meals=[MealOut.from_entity(m) for m in items])
