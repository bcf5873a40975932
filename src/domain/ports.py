from __future__ import annotations

from typing import Any, Callable, Protocol

from src.domain.entities.profile import ProfileEntity
from src.domain.entities.session import Session, SignUpResult

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"
TOKEN_REFRESHED = "TOKEN_REFRESHED"

SessionChangeCallback = Callable[[str, "Session | None"], None]


class Subscription(Protocol):
    def unsubscribe(self) -> None: ...


class SessionStore(Protocol):
    """Hosted authentication provider as seen by the role resolver."""

    async def sign_in_with_password(self, email: str, password: str) -> Session: ...

    async def sign_up(self, email: str, password: str, metadata: dict[str, Any]) -> SignUpResult: ...

    async def sign_out(self) -> None: ...

    async def get_current_session(self) -> Session | None: ...

    def on_session_change(self, callback: SessionChangeCallback) -> Subscription: ...


class ProfileLookup(Protocol):
    async def fetch(self, identity: str) -> ProfileEntity | None:
        """Return the profile row, or None when no row exists.

        Raises ProfileLookupError for any other failure.
        """
        ...

    async def insert(
        self, identity: str, role: str, display_name: str | None, email: str | None
    ) -> ProfileEntity:
        """Create the single profile row for an identity.

        Raises ProfileCreateError on failure.
        """
        ...
