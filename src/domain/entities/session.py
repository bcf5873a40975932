from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from src.domain.entities.profile import ProfileEntity


@dataclass(frozen=True)
class Session:
    """Authenticated session as issued by a session store."""

    identity: str
    email: str | None = None
    access_token: str | None = None
    refresh_token: str | None = None
    # sign-up metadata (requested role, display name)
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SignUpResult:
    identity: str
    email: str | None
    session: Session | None  # None when the provider requires email confirmation


@dataclass(frozen=True)
class ResolvedSession:
    """Derived view combining session state and the profile lookup."""

    identity: str | None = None
    profile: ProfileEntity | None = None
    loading: bool = True
    session: Session | None = None

    @property
    def authenticated(self) -> bool:
        return self.identity is not None

    @property
    def role(self) -> str | None:
        return self.profile.role if self.profile else None
