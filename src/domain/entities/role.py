from __future__ import annotations

from dataclasses import dataclass

from src.domain.errors import InvalidRoleError

# roles the application itself gates on; the full set is configurable
ADMIN = "admin"
USER = "user"


@dataclass(frozen=True)
class RoleSet:
    """Closed set of role tags a profile may carry.

    Checks are flat equality: no role implies another.
    """

    roles: frozenset[str]
    default: str

    def __post_init__(self) -> None:
        if not self.roles:
            raise ValueError("Role set must contain at least one role")
        if self.default not in self.roles:
            raise ValueError(f"Default role '{self.default}' is not in the role set")

    @classmethod
    def parse(cls, value: str, default: str) -> RoleSet:
        roles = frozenset(part.strip() for part in value.split(",") if part.strip())
        return cls(roles=roles, default=default.strip())

    def __contains__(self, role: object) -> bool:
        return role in self.roles

    def validate(self, role: str | None) -> str:
        if role is None:
            return self.default
        if role not in self.roles:
            raise InvalidRoleError(role, self.roles)
        return role
