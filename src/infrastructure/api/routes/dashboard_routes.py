from __future__ import annotations

from fastapi import APIRouter, Depends

from src.application.dtos.restaurant_dto import (
    AdminDashboardResponse,
    MealOut,
    RestaurantOut,
    UserDashboardResponse,
)
from src.domain.entities.role import ADMIN, USER
from src.domain.entities.session import ResolvedSession
from src.infrastructure.api.dependencies import get_meal_repo, get_restaurant_repo, require_role
from src.infrastructure.database.repositories.meal_repository import MealRepository
from src.infrastructure.database.repositories.restaurant_repository import RestaurantRepository

router = APIRouter(
    prefix="/dashboard",
    tags=["Dashboards"],
    responses={
        401: {"description": "Unauthorized - Sign in first (Location points to the sign-in page)"},
        403: {"description": "Forbidden - Wrong role (Location points to the landing page)"},
    },
)


@router.get(
    "/user",
    response_model=UserDashboardResponse,
    summary="Customer Dashboard",
    description="""
    Restaurants and currently available meals for a signed-in customer.

    **Authentication required**: Yes (Bearer token), role `user`
    """,
)
def user_dashboard(
    _: ResolvedSession = Depends(require_role(USER)),
    restaurants: RestaurantRepository = Depends(get_restaurant_repo),
    meals: MealRepository = Depends(get_meal_repo),
):
    return UserDashboardResponse(
        restaurants=[RestaurantOut.from_entity(r) for r in restaurants.list_all()],
        meals=[MealOut.from_entity(m) for m in meals.list_available()],
    )


@router.get(
    "/admin",
    response_model=AdminDashboardResponse,
    summary="Restaurant Admin Dashboard",
    description="""
    The admin's restaurant with every meal, available or not. `restaurant`
    is null until the admin creates one.

    **Authentication required**: Yes (Bearer token), role `admin`
    """,
)
def admin_dashboard(
    resolved: ResolvedSession = Depends(require_role(ADMIN)),
    restaurants: RestaurantRepository = Depends(get_restaurant_repo),
    meals: MealRepository = Depends(get_meal_repo),
):
    restaurant = restaurants.get_by_owner(resolved.identity)
    if restaurant is None:
        return AdminDashboardResponse(restaurant=None, meals=[])
    return AdminDashboardResponse(
        restaurant=RestaurantOut.from_entity(restaurant),
        meals=[MealOut.from_entity(m) for m in meals.list_by_restaurant(restaurant.id)],
    )
