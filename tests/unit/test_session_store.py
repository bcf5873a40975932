from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest

from src.domain.errors import AuthError
from src.infrastructure.auth.session_store import (
    InMemoryAuthDirectory,
    InMemorySessionStore,
    SupabaseSessionStore,
)
from src.infrastructure.database import supabase_client


@pytest.fixture()
def directory():
    return InMemoryAuthDirectory()


def test_sign_up_signs_in_and_announces(directory):
    store = InMemorySessionStore(directory)
    events = []
    store.on_session_change(lambda event, session: events.append((event, session)))

    result = asyncio.run(store.sign_up("Ann@Example.com", "secret123", {"role": "admin"}))
    assert result.session is not None
    assert result.email == "ann@example.com"
    assert events == [("SIGNED_IN", result.session)]
    assert result.session.metadata == {"role": "admin"}


def test_duplicate_email_rejected(directory):
    store = InMemorySessionStore(directory)
    asyncio.run(store.sign_up("ann@example.com", "secret123", {}))
    with pytest.raises(AuthError) as exc_info:
        asyncio.run(store.sign_up("ANN@example.com", "other-pass", {}))
    assert exc_info.value.code == AuthError.USER_EXISTS


def test_wrong_password_rejected(directory):
    store = InMemorySessionStore(directory)
    asyncio.run(store.sign_up("ann@example.com", "secret123", {}))
    with pytest.raises(AuthError) as exc_info:
        asyncio.run(store.sign_in_with_password("ann@example.com", "nope-nope"))
    assert exc_info.value.code == AuthError.INVALID_CREDENTIALS


def test_bearer_store_resolves_and_sign_out_revokes(directory):
    session = asyncio.run(
        InMemorySessionStore(directory).sign_up("ann@example.com", "secret123", {})
    ).session

    bearer_store = InMemorySessionStore(directory, access_token=session.access_token)
    current = asyncio.run(bearer_store.get_current_session())
    assert current.identity == session.identity

    events = []
    bearer_store.on_session_change(lambda event, s: events.append(event))
    asyncio.run(bearer_store.sign_out())
    assert events == ["SIGNED_OUT"]

    later = InMemorySessionStore(directory, access_token=session.access_token)
    assert asyncio.run(later.get_current_session()) is None


def test_unknown_token_has_no_session(directory):
    store = InMemorySessionStore(directory, access_token="made-up")
    assert asyncio.run(store.get_current_session()) is None


def test_unsubscribe_and_close(directory):
    store = InMemorySessionStore(directory)
    events = []
    sub = store.on_session_change(lambda event, s: events.append(event))
    sub.unsubscribe()
    asyncio.run(store.sign_up("a@example.com", "secret123", {}))
    store.on_session_change(lambda event, s: events.append(event))
    store.close()
    asyncio.run(store.sign_in_with_password("a@example.com", "secret123"))
    assert events == []


def test_sign_out_without_session(directory):
    with pytest.raises(AuthError) as exc_info:
        asyncio.run(InMemorySessionStore(directory).sign_out())
    assert exc_info.value.code == AuthError.NOT_SIGNED_IN


class _FakeAuth:
    def __init__(self) -> None:
        self.listeners = []
        self.closed = False

    def on_auth_state_change(self, callback):
        self.listeners.append(callback)
        auth = self

        class _Sub:
            def unsubscribe(self):
                auth.listeners.remove(callback)

        return _Sub()

    async def close(self) -> None:
        self.closed = True


def test_supabase_store_releases_its_client():
    auth = _FakeAuth()
    store = SupabaseSessionStore(SimpleNamespace(auth=auth), access_token="tok")
    store.on_session_change(lambda event, session: None)

    asyncio.run(store.aclose())
    assert auth.listeners == []
    assert auth.closed is True


def test_auth_client_is_request_scoped(monkeypatch):
    seen = {}

    async def fake_acreate_client(url, key, options=None):
        seen.update(url=url, key=key, options=options)
        return SimpleNamespace(auth=_FakeAuth())

    monkeypatch.setenv("SUPABASE_DISABLED", "0")
    monkeypatch.setenv("SUPABASE_URL", "https://example.supabase.co")
    monkeypatch.setenv("SUPABASE_ANON_KEY", "anon")
    monkeypatch.setattr(supabase_client, "acreate_client", fake_acreate_client)

    assert asyncio.run(supabase_client.create_auth_client()) is not None
    assert seen["key"] == "anon"
    assert seen["options"].auto_refresh_token is False
    assert seen["options"].persist_session is False
