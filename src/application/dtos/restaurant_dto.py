from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from src.domain.entities.meal import MealEntity
from src.domain.entities.restaurant import RestaurantEntity


class RestaurantOut(BaseModel):
    """Public restaurant listing entry."""
    id: str = Field(..., description="Unique identifier of the restaurant")
    name: str = Field(..., description="Restaurant name", examples=["Chez Marie"])
    location: str = Field(..., description="Where the restaurant is", examples=["Lyon"])
    image_url: str | None = Field(None, description="Cover image")
    rating: float = Field(0.0, description="Average rating", ge=0)
    created_at: datetime = Field(..., description="When the restaurant was created")

    @classmethod
    def from_entity(cls, r: RestaurantEntity) -> RestaurantOut:
        return cls(
            id=r.id,
            name=r.name,
            location=r.location,
            image_url=r.image_url,
            rating=r.rating,
            created_at=r.created_at,
        )


class RestaurantBody(BaseModel):
    """Restaurant settings editable by its admin."""
    name: str = Field(..., min_length=1, max_length=200, description="Restaurant name")
    location: str = Field(..., min_length=1, max_length=200, description="Restaurant location")


class MealOut(BaseModel):
    id: str = Field(..., description="Unique identifier of the meal")
    restaurant_id: str = Field(..., description="Restaurant offering the meal")
    name: str = Field(..., description="Meal name", examples=["Ratatouille"])
    description: str | None = Field(None, description="Optional description")
    price: float = Field(..., description="Price", ge=0, examples=[12.5])
    image_url: str | None = Field(None, description="Optional image")
    is_available: bool = Field(True, description="Whether the meal can currently be ordered")
    created_at: datetime = Field(..., description="When the meal was listed")
    updated_at: datetime | None = Field(None, description="Last modification")

    @classmethod
    def from_entity(cls, m: MealEntity) -> MealOut:
        return cls(
            id=m.id,
            restaurant_id=m.restaurant_id,
            name=m.name,
            description=m.description,
            price=m.price,
            image_url=m.image_url,
            is_available=m.is_available,
            created_at=m.created_at,
            updated_at=m.updated_at,
        )


class CreateMealBody(BaseModel):
    """New meal listing."""
    name: str = Field(..., min_length=1, max_length=200, description="Meal name is required")
    description: str | None = Field(None, description="Optional description")
    price: float = Field(..., ge=0, description="Price, zero or more", examples=[9.99])
    image_url: str | None = Field(None, description="Optional image URL")
    is_available: bool = Field(True, description="Listed as available")


class ListRestaurantsResponse(BaseModel):
    restaurants: list[RestaurantOut] = Field(..., description="Restaurants, newest first")


class ListMealsResponse(BaseModel):
    meals: list[MealOut] = Field(..., description="Meals, newest first")


class UserDashboardResponse(BaseModel):
    """Everything a signed-in customer browses."""
    restaurants: list[RestaurantOut] = Field(..., description="Restaurants, newest first")
    meals: list[MealOut] = Field(..., description="Available meals, newest first")


class AdminDashboardResponse(BaseModel):
    """An admin's restaurant and its full menu."""
    restaurant: RestaurantOut | None = Field(None, description="Restaurant managed by the admin")
    meals: list[MealOut] = Field(default_factory=list, description="All meals of the restaurant")
