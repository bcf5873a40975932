"""Hand-written collaborators for driving the role resolver in tests."""
from __future__ import annotations

import asyncio
from types import SimpleNamespace
from typing import Any

from src.domain.entities.profile import ProfileEntity
from src.domain.entities.session import Session, SignUpResult
from src.domain.errors import AuthError, ProfileCreateError, ProfileLookupError
from src.domain.ports import SIGNED_IN, SIGNED_OUT


class FakeSubscription:
    def __init__(self, store: FakeSessionStore, callback) -> None:
        self.store = store
        self.callback = callback

    def unsubscribe(self) -> None:
        self.store.callbacks.remove(self.callback)


class FakeSessionStore:
    def __init__(self, current: Session | None = None) -> None:
        self.current = current
        self.callbacks: list = []
        self.calls: list[str] = []
        self.users: dict[str, tuple[str, str, dict[str, Any]]] = {}
        self.during_probe = None  # optional callable run inside get_current_session

    def on_session_change(self, callback) -> FakeSubscription:
        self.calls.append("subscribe")
        self.callbacks.append(callback)
        return FakeSubscription(self, callback)

    async def get_current_session(self) -> Session | None:
        self.calls.append("probe")
        result = self.current
        if self.during_probe is not None:
            self.during_probe()
        await asyncio.sleep(0)
        return result

    def emit(self, event: str, session: Session | None) -> None:
        self.current = session
        for cb in list(self.callbacks):
            cb(event, session)

    async def sign_in_with_password(self, email: str, password: str) -> Session:
        self.calls.append("sign_in")
        user = self.users.get(email)
        if user is None or user[0] != password:
            raise AuthError("Invalid login credentials", AuthError.INVALID_CREDENTIALS)
        session = session_for(user[1], email=email, metadata=user[2])
        self.emit(SIGNED_IN, session)
        return session

    async def sign_up(self, email: str, password: str, metadata: dict[str, Any]) -> SignUpResult:
        self.calls.append("sign_up")
        if email in self.users:
            raise AuthError("User already registered", AuthError.USER_EXISTS)
        identity = f"id-{len(self.users) + 1}"
        self.users[email] = (password, identity, dict(metadata))
        session = session_for(identity, email=email, metadata=metadata)
        self.emit(SIGNED_IN, session)
        return SignUpResult(identity=identity, email=email, session=session)

    async def sign_out(self) -> None:
        self.calls.append("sign_out")
        self.emit(SIGNED_OUT, None)


class FakeProfiles:
    def __init__(self) -> None:
        self.rows: dict[str, ProfileEntity] = {}
        self.gates: dict[str, asyncio.Event] = {}
        self.failing: set[str] = set()
        self.fail_insert = False
        self.fetched: list[str] = []

    def add(self, identity: str, role: str) -> ProfileEntity:
        profile = ProfileEntity(id=identity, role=role, display_name=identity)
        self.rows[identity] = profile
        return profile

    async def fetch(self, identity: str) -> ProfileEntity | None:
        self.fetched.append(identity)
        gate = self.gates.get(identity)
        if gate is not None:
            await gate.wait()
        if identity in self.failing:
            raise ProfileLookupError("connection reset")
        return self.rows.get(identity)

    async def insert(
        self, identity: str, role: str, display_name: str | None, email: str | None
    ) -> ProfileEntity:
        if self.fail_insert:
            raise ProfileCreateError("insert rejected")
        if identity in self.rows:
            raise ProfileCreateError("duplicate")
        profile = ProfileEntity(id=identity, role=role, display_name=display_name, email=email)
        self.rows[identity] = profile
        return profile


def session_for(identity: str, email: str | None = None, token: str | None = None, metadata=None) -> Session:
    return Session(
        identity=identity,
        email=email or f"{identity}@example.com",
        access_token=token or f"tok-{identity}",
        metadata=dict(metadata or {}),
    )


async def spin(times: int = 5) -> None:
    """Let pending tasks run."""
    for _ in range(times):
        await asyncio.sleep(0)


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


class FakeQuery:
    def __init__(self, rows: list[dict]) -> None:
        self.rows = rows
        self.filters: list[tuple[str, Any]] = []

    def select(self, *_columns) -> FakeQuery:
        return self

    def eq(self, column: str, value: Any) -> FakeQuery:
        self.filters.append((column, value))
        return self

    def limit(self, _n: int) -> FakeQuery:
        return self

    def execute(self) -> SimpleNamespace:
        data = [r for r in self.rows if all(r.get(c) == v for c, v in self.filters)]
        return SimpleNamespace(data=data)


class FakeTableClient:
    """Just enough of the Supabase table API for read paths."""

    def __init__(self, **tables: list[dict]) -> None:
        self.tables = tables

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self.tables.setdefault(name, []))
