from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class RestaurantEntity:
    id: str
    owner_id: str | None  # identity of the admin managing it
    name: str
    location: str
    created_at: datetime
    image_url: str | None = None
    rating: float = 0.0
