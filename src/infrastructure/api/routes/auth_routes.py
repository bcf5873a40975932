from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from src.application.dtos.auth_dto import (
    ProfileOut,
    SessionResponse,
    SignInRequest,
    SignUpRequest,
    SignUpResponse,
    UpdateProfileBody,
)
from src.application.dtos.common_dto import SuccessResponse
from src.application.dtos.restaurant_dto import RestaurantOut
from src.application.use_cases.register_account import RegisterAccountUseCase
from src.domain.entities.session import ResolvedSession
from src.domain.errors import AuthError, InvalidRoleError, ProfileCreateError, ProfileLookupError
from src.domain.services.role_resolver import RoleResolver
from src.infrastructure.api.dependencies import (
    get_profile_repo,
    get_resolved_session,
    get_restaurant_repo,
    get_role_resolver,
    require_authenticated,
)
from src.infrastructure.database.repositories.profile_repository import ProfileRepository
from src.infrastructure.database.repositories.restaurant_repository import RestaurantRepository

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/auth",
    tags=["Authentication"],
    responses={
        401: {"description": "Unauthorized - Invalid credentials or missing bearer token"},
        422: {"description": "Validation Error - Invalid request format"},
    },
)

_AUTH_STATUS = {
    AuthError.INVALID_CREDENTIALS: status.HTTP_401_UNAUTHORIZED,
    AuthError.NOT_SIGNED_IN: status.HTTP_401_UNAUTHORIZED,
    AuthError.USER_EXISTS: status.HTTP_409_CONFLICT,
    AuthError.UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def _auth_http_error(exc: AuthError) -> HTTPException:
    return HTTPException(
        status_code=_AUTH_STATUS.get(exc.code, status.HTTP_401_UNAUTHORIZED), detail=exc.message
    )


@router.post(
    "/sign-up",
    response_model=SignUpResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register Account",
    description="""
    Create an identity with the auth provider and its single profile row.

    - The role must belong to the configured role set
    - Admins may pass `restaurant_name` and `location` to create their restaurant
    - When the profile insert fails the identity still exists; the response has
      `profile_created=false` and the account is finished with
      `POST /auth/profile/reconcile`
    """,
    response_description="Created identity and profile status",
    responses={
        400: {"description": "Bad Request - Unknown role"},
        409: {"description": "Conflict - Email already registered"},
        503: {"description": "Service Unavailable - Auth provider unreachable"},
    },
)
async def sign_up(
    body: SignUpRequest,
    resolver: RoleResolver = Depends(get_role_resolver),
    restaurants: RestaurantRepository = Depends(get_restaurant_repo),
):
    """Register a new account."""
    uc = RegisterAccountUseCase(restaurants)
    try:
        outcome, restaurant = await uc.execute(
            resolver,
            body.email,
            body.password,
            role=body.role,
            display_name=body.display_name,
            restaurant_name=body.restaurant_name,
            location=body.location,
        )
    except InvalidRoleError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except AuthError as exc:
        raise _auth_http_error(exc) from exc
    return SignUpResponse(
        user_id=outcome.identity,
        email=outcome.session.email if outcome.session else body.email,
        role=outcome.role,
        profile_created=outcome.profile_created,
        access_token=outcome.session.access_token if outcome.session else None,
        restaurant=RestaurantOut.from_entity(restaurant) if restaurant else None,
    )


@router.post(
    "/sign-in",
    response_model=SessionResponse,
    summary="Sign In",
    description="""
    Password sign-in. Returns a bearer token together with the resolved
    profile. A missing profile is reported as `profile: null`, which grants
    no role.
    """,
    response_description="Resolved session including the access token",
    responses={503: {"description": "Service Unavailable - Auth provider unreachable"}},
)
async def sign_in(body: SignInRequest, resolver: RoleResolver = Depends(get_role_resolver)):
    """Sign in with email and password."""
    try:
        resolved = await resolver.sign_in(body.email, body.password)
    except AuthError as exc:
        raise _auth_http_error(exc) from exc
    return SessionResponse.from_resolved(resolved, include_token=True)


@router.post(
    "/sign-out",
    response_model=SuccessResponse,
    summary="Sign Out",
    description="Revoke the bearer session. **Authentication required**: Yes (Bearer token)",
)
async def sign_out(
    _: ResolvedSession = Depends(require_authenticated),
    resolver: RoleResolver = Depends(get_role_resolver),
):
    """Sign out the current session."""
    try:
        await resolver.sign_out()
    except AuthError as exc:
        raise _auth_http_error(exc) from exc
    return SuccessResponse(message="Signed out")


@router.get(
    "/session",
    response_model=SessionResponse,
    summary="Resolve Session",
    description="""
    Report the resolved session for the bearer token, if any. Never fails
    for missing or invalid tokens: those resolve to `authenticated=false`.
    """,
)
def get_session(resolved: ResolvedSession = Depends(get_resolved_session)):
    """Return the resolved session view."""
    return SessionResponse.from_resolved(resolved)


@router.get(
    "/me",
    response_model=SessionResponse,
    summary="Get Current User",
    description="""
    Identity and profile of the caller. Only authentication is required;
    `profile` is null when no profile exists or its lookup failed.

    **Authentication required**: Yes (Bearer token)
    """,
)
def get_me(resolved: ResolvedSession = Depends(require_authenticated)):
    """Get the current user's resolved session."""
    return SessionResponse.from_resolved(resolved)


@router.patch(
    "/profile",
    response_model=ProfileOut,
    summary="Update Profile",
    description="""
    Update the display name of the caller's profile.

    **Request Requirements:**
    - Display name must be between 1 and 100 characters
    - Display name cannot be empty or whitespace only

    **Authentication required**: Yes (Bearer token)
    """,
    responses={
        400: {"description": "Bad Request - Invalid name provided"},
        404: {"description": "Not Found - Caller has no profile"},
    },
)
def update_profile(
    body: UpdateProfileBody,
    resolved: ResolvedSession = Depends(require_authenticated),
    profiles: ProfileRepository = Depends(get_profile_repo),
):
    """Update the current user's display name."""
    if not body.name.strip():
        raise HTTPException(status_code=400, detail="Display name cannot be empty")
    if resolved.profile is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    prof = profiles.set_display_name(resolved.identity, body.name.strip())
    if prof is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    return ProfileOut.from_entity(prof)


@router.post(
    "/profile/reconcile",
    response_model=ProfileOut,
    summary="Reconcile Missing Profile",
    description="""
    Finish an account whose profile insert failed at sign-up. The profile is
    created from the role and display name recorded with the identity at
    sign-up. Idempotent: an existing profile is returned unchanged.

    **Authentication required**: Yes (Bearer token)
    """,
    responses={
        400: {"description": "Bad Request - Recorded role is not in the role set"},
        503: {"description": "Service Unavailable - Profile store unreachable"},
    },
)
async def reconcile_profile(
    _: ResolvedSession = Depends(require_authenticated),
    resolver: RoleResolver = Depends(get_role_resolver),
):
    """Create the caller's missing profile."""
    try:
        profile = await resolver.reconcile_profile()
    except AuthError as exc:
        raise _auth_http_error(exc) from exc
    except InvalidRoleError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except (ProfileLookupError, ProfileCreateError) as exc:
        logger.warning("Profile reconciliation failed: %s", exc)
        raise HTTPException(status_code=503, detail="Profile store unavailable, retry later") from exc
    return ProfileOut.from_entity(profile)
