from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class ProfileEntity:
    id: str  # identity from the session store
    role: str
    display_name: str | None = None
    email: str | None = None
    created_at: datetime | None = None
