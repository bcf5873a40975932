from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Annotated

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.domain.entities.role import RoleSet
from src.domain.entities.session import ResolvedSession
from src.domain.services.role_resolver import RoleResolver
from src.domain.services.route_guard import GuardDecision, GuardState, RouteGuard
from src.infrastructure.auth.session_store import create_session_store
from src.infrastructure.database.repositories.meal_repository import MealRepository
from src.infrastructure.database.repositories.profile_repository import ProfileRepository
from src.infrastructure.database.repositories.restaurant_repository import RestaurantRepository
from src.infrastructure.database.supabase_client import get_supabase_client
from src.infrastructure.settings import get_role_set, landing_path, sign_in_path

_bearer_scheme = HTTPBearer(auto_error=False)


def get_roles() -> RoleSet:
    return get_role_set()


def get_profile_repo() -> ProfileRepository:
    return ProfileRepository(get_supabase_client())


def get_restaurant_repo() -> RestaurantRepository:
    return RestaurantRepository(get_supabase_client())


def get_meal_repo() -> MealRepository:
    return MealRepository(get_supabase_client())


async def get_role_resolver(
    profiles: Annotated[ProfileRepository, Depends(get_profile_repo)],
    roles: Annotated[RoleSet, Depends(get_roles)],
    credentials: Annotated[HTTPAuthorizationCredentials | None, Security(_bearer_scheme)] = None,
) -> AsyncIterator[RoleResolver]:
    """Request-scoped resolver over the caller's bearer session.

    Started and settled before the route runs, unsubscribed afterwards.
    """
    token = None
    if credentials and credentials.scheme and credentials.scheme.lower() == "bearer":
        token = credentials.credentials or None
    store = await create_session_store(token)
    resolver = RoleResolver(store, profiles, roles)
    try:
        await resolver.start()
        yield resolver
    finally:
        resolver.close()
        await store.aclose()


def get_resolved_session(
    resolver: Annotated[RoleResolver, Depends(get_role_resolver)],
) -> ResolvedSession:
    return resolver.state


def _guard_exception(decision: GuardDecision) -> HTTPException:
    if decision.state is GuardState.UNAUTHENTICATED:
        return HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"Location": decision.redirect_to or "", "WWW-Authenticate": "Bearer"},
        )
    if decision.state is GuardState.FORBIDDEN:
        return HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Your role does not grant access to this resource",
            headers={"Location": decision.redirect_to or ""},
        )
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Session is still being resolved",
        headers={"Retry-After": "1"},
    )


def require_role(*roles: str):
    """Dependency gating a route on the resolved session.

    With no roles only an authenticated identity is required. With several,
    any one of them is accepted.
    """

    def guard(session: Annotated[ResolvedSession, Depends(get_resolved_session)]) -> ResolvedSession:
        decision = RouteGuard(
            roles or None, sign_in_path=sign_in_path(), landing_path=landing_path()
        ).evaluate(session)
        if not decision.allowed:
            raise _guard_exception(decision)
        return session

    return guard


require_authenticated = require_role()
