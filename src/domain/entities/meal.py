from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class MealEntity:
    id: str
    restaurant_id: str
    name: str
    price: float
    created_at: datetime
    description: str | None = None
    image_url: str | None = None
    is_available: bool = True
    updated_at: datetime | None = None
