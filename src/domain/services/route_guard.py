from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from src.domain.entities.session import ResolvedSession


class GuardState(str, Enum):
    PENDING = "pending"
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN = "forbidden"
    AUTHORIZED = "authorized"


@dataclass(frozen=True)
class GuardDecision:
    state: GuardState
    redirect_to: str | None = None

    @property
    def allowed(self) -> bool:
        return self.state is GuardState.AUTHORIZED


class RouteGuard:
    """Decides whether a protected view may render for a resolved session.

    ``required_role`` is either a single role or a collection of acceptable
    roles. Matching is exact; no role implies another.
    """

    def __init__(
        self,
        required_role: str | Iterable[str] | None = None,
        *,
        sign_in_path: str = "/auth",
        landing_path: str = "/",
    ) -> None:
        if required_role is None:
            self.required: frozenset[str] | None = None
        elif isinstance(required_role, str):
            self.required = frozenset({required_role})
        else:
            self.required = frozenset(required_role)
        self.sign_in_path = sign_in_path
        self.landing_path = landing_path

    def evaluate(self, session: ResolvedSession) -> GuardDecision:
        if session.loading:
            return GuardDecision(GuardState.PENDING)
        if session.identity is None:
            return GuardDecision(GuardState.UNAUTHENTICATED, self.sign_in_path)
        if self.required is None:
            return GuardDecision(GuardState.AUTHORIZED)
        # an absent profile (none found or lookup failed) never satisfies a role
        if session.profile is None or session.profile.role not in self.required:
            return GuardDecision(GuardState.FORBIDDEN, self.landing_path)
        return GuardDecision(GuardState.AUTHORIZED)
