"""Environment-driven settings shared across layers."""
from __future__ import annotations

import os

from src.domain.entities.role import RoleSet


def supabase_disabled() -> bool:
    return os.getenv("SUPABASE_DISABLED", "0") == "1"


def use_local_db() -> bool:
    return os.getenv("USE_LOCAL_DB", "0") == "1"


def get_role_set() -> RoleSet:
    # e.g. APP_ROLES=admin,user,manager
    return RoleSet.parse(
        os.getenv("APP_ROLES", "admin,user"),
        default=os.getenv("APP_DEFAULT_ROLE", "user"),
    )


def sign_in_path() -> str:
    return os.getenv("AUTH_SIGN_IN_PATH", "/auth")


def landing_path() -> str:
    return os.getenv("AUTH_LANDING_PATH", "/")


def log_level() -> str:
    return os.getenv("LOG_LEVEL", "INFO").upper()
