from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from src.application.dtos.common_dto import SuccessResponse
from src.application.dtos.restaurant_dto import CreateMealBody, MealOut, RestaurantBody, RestaurantOut
from src.application.use_cases.manage_meals import AddMealUseCase, DeleteMealUseCase
from src.domain.entities.role import ADMIN
from src.domain.entities.session import ResolvedSession
from src.domain.errors import RestaurantExistsError
from src.infrastructure.api.dependencies import get_meal_repo, get_restaurant_repo, require_role
from src.infrastructure.database.repositories.meal_repository import MealRepository
from src.infrastructure.database.repositories.restaurant_repository import RestaurantRepository

router = APIRouter(
    prefix="/admin",
    tags=["Restaurant Administration"],
    responses={
        401: {"description": "Unauthorized - Sign in first"},
        403: {"description": "Forbidden - Admin role required"},
        422: {"description": "Validation Error - Invalid request format"},
    },
)

require_admin = require_role(ADMIN)


@router.post(
    "/restaurant",
    response_model=RestaurantOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create Restaurant",
    description="Create the restaurant managed by the calling admin. One restaurant per admin.",
    responses={409: {"description": "Conflict - Admin already manages a restaurant"}},
)
def create_restaurant(
    body: RestaurantBody,
    resolved: ResolvedSession = Depends(require_admin),
    restaurants: RestaurantRepository = Depends(get_restaurant_repo),
):
    if not body.name.strip() or not body.location.strip():
        raise HTTPException(status_code=400, detail="Name and location are required")
    try:
        r = restaurants.create(resolved.identity, body.name.strip(), body.location.strip())
    except RestaurantExistsError as exc:
        raise HTTPException(status_code=409, detail="Restaurant already exists") from exc
    return RestaurantOut.from_entity(r)


@router.patch(
    "/restaurant",
    response_model=RestaurantOut,
    summary="Update Restaurant Settings",
    description="Update name and location of the calling admin's restaurant.",
)
def update_restaurant(
    body: RestaurantBody,
    resolved: ResolvedSession = Depends(require_admin),
    restaurants: RestaurantRepository = Depends(get_restaurant_repo),
):
    if not body.name.strip() or not body.location.strip():
        raise HTTPException(status_code=400, detail="Name and location are required")
    current = restaurants.get_by_owner(resolved.identity)
    if current is None:
        raise HTTPException(status_code=404, detail="Restaurant not found")
    updated = restaurants.update(current.id, body.name.strip(), body.location.strip())
    if updated is None:
        raise HTTPException(status_code=404, detail="Restaurant not found")
    return RestaurantOut.from_entity(updated)


@router.post(
    "/meals",
    response_model=MealOut,
    status_code=status.HTTP_201_CREATED,
    summary="Add Meal",
    description="""
    Add a meal to the calling admin's restaurant.

    **Request Requirements:**
    - Name is required
    - Price must be zero or more
    """,
    responses={404: {"description": "Not Found - Admin has no restaurant yet"}},
)
def add_meal(
    body: CreateMealBody,
    resolved: ResolvedSession = Depends(require_admin),
    restaurants: RestaurantRepository = Depends(get_restaurant_repo),
    meals: MealRepository = Depends(get_meal_repo),
):
    if not body.name.strip():
        raise HTTPException(status_code=400, detail="Meal name is required")
    meal = AddMealUseCase(restaurants, meals).execute(
        resolved.identity,
        body.name,
        body.price,
        description=body.description,
        image_url=body.image_url,
        is_available=body.is_available,
    )
    if meal is None:
        raise HTTPException(status_code=404, detail="Create your restaurant before adding meals")
    return MealOut.from_entity(meal)


@router.delete(
    "/meals/{meal_id}",
    response_model=SuccessResponse,
    summary="Delete Meal",
    responses={404: {"description": "Not Found - Meal does not exist or belongs to another restaurant"}},
)
def delete_meal(
    meal_id: str,
    resolved: ResolvedSession = Depends(require_admin),
    restaurants: RestaurantRepository = Depends(get_restaurant_repo),
    meals: MealRepository = Depends(get_meal_repo),
):
    """Delete one of the admin's own meals."""
    if not DeleteMealUseCase(restaurants, meals).execute(resolved.identity, meal_id):
        raise HTTPException(status_code=404, detail="Meal not found or access denied")
    return SuccessResponse(message="Meal deleted")
