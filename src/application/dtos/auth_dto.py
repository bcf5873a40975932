from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, model_validator

from src.application.dtos.restaurant_dto import RestaurantOut
from src.domain.entities.profile import ProfileEntity
from src.domain.entities.session import ResolvedSession

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class SignInRequest(BaseModel):
    """Credentials for password sign-in."""
    email: str = Field(..., pattern=EMAIL_PATTERN, description="Account email", examples=["user@example.com"])
    password: str = Field(..., min_length=6, description="Account password")


class SignUpRequest(BaseModel):
    """Account registration. Admins may create their restaurant in the same step."""
    email: str = Field(..., pattern=EMAIL_PATTERN, description="Account email", examples=["owner@example.com"])
    password: str = Field(..., min_length=6, description="Account password")
    confirm_password: str = Field(..., min_length=6, description="Must match password")
    display_name: str | None = Field(None, max_length=100, description="Display name", examples=["Jane Doe"])
    role: str | None = Field(None, description="Requested role; defaults to the configured default role", examples=["user"])
    restaurant_name: str | None = Field(None, min_length=1, max_length=200, description="Admin only: restaurant to create")
    location: str | None = Field(None, min_length=1, max_length=200, description="Admin only: restaurant location")

    @model_validator(mode="after")
    def passwords_match(self) -> SignUpRequest:
        if self.password != self.confirm_password:
            raise ValueError("Passwords don't match")
        return self


class ProfileOut(BaseModel):
    """Profile row of an authenticated identity."""
    id: str = Field(..., description="Identity the profile belongs to")
    role: str = Field(..., description="Role tag from the configured role set", examples=["admin"])
    name: str | None = Field(None, description="Display name", examples=["Jane Doe"])
    email: str | None = Field(None, description="Email address")
    created_at: datetime | None = Field(None, description="When the profile was created")

    @classmethod
    def from_entity(cls, profile: ProfileEntity) -> ProfileOut:
        return cls(
            id=profile.id,
            role=profile.role,
            name=profile.display_name,
            email=profile.email,
            created_at=profile.created_at,
        )


class SessionResponse(BaseModel):
    """Resolved session view: identity, profile and loading flag."""
    authenticated: bool = Field(..., description="Whether an identity is present")
    loading: bool = Field(False, description="True until the session and profile have been resolved")
    user_id: str | None = Field(None, description="Authenticated identity")
    email: str | None = Field(None, description="Email of the authenticated identity")
    profile: ProfileOut | None = Field(None, description="Profile, absent when none exists or the lookup failed")
    access_token: str | None = Field(None, description="Bearer token, returned on sign-in only")

    @classmethod
    def from_resolved(cls, resolved: ResolvedSession, include_token: bool = False) -> SessionResponse:
        session = resolved.session
        return cls(
            authenticated=resolved.authenticated,
            loading=resolved.loading,
            user_id=resolved.identity,
            email=session.email if session else None,
            profile=ProfileOut.from_entity(resolved.profile) if resolved.profile else None,
            access_token=session.access_token if (session and include_token) else None,
        )


class SignUpResponse(BaseModel):
    """Outcome of a registration."""
    user_id: str = Field(..., description="Identity created by the auth provider")
    email: str | None = Field(None, description="Registered email")
    role: str = Field(..., description="Role requested at sign-up")
    profile_created: bool = Field(
        ..., description="False when the profile insert failed; call POST /auth/profile/reconcile"
    )
    access_token: str | None = Field(None, description="Bearer token when the provider signed the user in")
    restaurant: RestaurantOut | None = Field(None, description="Restaurant created for an admin sign-up")


class UpdateProfileBody(BaseModel):
    """Request model for updating the display name."""
    name: str = Field(..., min_length=1, max_length=100, description="Display name for the user", examples=["John Doe"])
