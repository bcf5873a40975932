from __future__ import annotations


class AuthError(Exception):
    """Raised by session stores for failures the user should see directly."""

    INVALID_CREDENTIALS = "invalid_credentials"
    USER_EXISTS = "user_exists"
    UNAVAILABLE = "unavailable"
    NOT_SIGNED_IN = "not_signed_in"

    def __init__(self, message: str, code: str = INVALID_CREDENTIALS) -> None:
        super().__init__(message)
        self.message = message
        self.code = code


class ProfileLookupError(Exception):
    """Profile read failed for a reason other than "no row"."""


class ProfileCreateError(Exception):
    """Profile insert failed (duplicate row or backend error)."""


class InvalidRoleError(ValueError):
    def __init__(self, role: str, allowed: frozenset[str]) -> None:
        super().__init__(f"Unknown role '{role}', expected one of: {', '.join(sorted(allowed))}")
        self.role = role
        self.allowed = allowed


class RestaurantExistsError(RuntimeError):
    """The admin already manages a restaurant."""
