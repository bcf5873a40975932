from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from src.domain.entities.restaurant import RestaurantEntity
from src.domain.entities.role import ADMIN
from src.domain.services.role_resolver import RoleResolver, SignUpOutcome
from src.infrastructure.database.repositories.restaurant_repository import RestaurantRepository

logger = logging.getLogger(__name__)


@dataclass
class RegisterAccountUseCase:
    restaurants: RestaurantRepository

    async def execute(
        self,
        resolver: RoleResolver,
        email: str,
        password: str,
        *,
        role: str | None = None,
        display_name: str | None = None,
        restaurant_name: str | None = None,
        location: str | None = None,
    ) -> tuple[SignUpOutcome, RestaurantEntity | None]:
        """
        Register an account and, for admins, their restaurant.

        The restaurant is only created once the profile exists. A failure to
        create it is logged and reported as ``None``; the account stays.
        """
        outcome = await resolver.sign_up(email, password, role=role, display_name=display_name)
        if not restaurant_name or outcome.profile is None or outcome.profile.role != ADMIN:
            return outcome, None
        try:
            restaurant = await asyncio.to_thread(
                self.restaurants.create,
                owner_id=outcome.identity,
                name=restaurant_name,
                location=location or "",
            )
        except RuntimeError as exc:
            logger.error("Restaurant creation failed for admin %s: %s", outcome.identity, exc)
            return outcome, None
        return outcome, restaurant
