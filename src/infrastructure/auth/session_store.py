from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
import threading
import uuid
from dataclasses import dataclass, field
from typing import Any

from supabase import AsyncClient

from src.domain.entities.session import Session, SignUpResult
from src.domain.errors import AuthError
from src.domain.ports import SIGNED_IN, SIGNED_OUT, SessionChangeCallback
from src.infrastructure.database.supabase_client import create_auth_client

logger = logging.getLogger(__name__)


class _CallbackSubscription:
    def __init__(self, owner: _CallbackRegistry, callback: SessionChangeCallback) -> None:
        self._owner = owner
        self.callback = callback

    def unsubscribe(self) -> None:
        self._owner._remove(self)


class _CallbackRegistry:
    def __init__(self) -> None:
        self._subscriptions: list[_CallbackSubscription] = []

    def on_session_change(self, callback: SessionChangeCallback) -> _CallbackSubscription:
        sub = _CallbackSubscription(self, callback)
        self._subscriptions.append(sub)
        return sub

    def _remove(self, sub: _CallbackSubscription) -> None:
        if sub in self._subscriptions:
            self._subscriptions.remove(sub)

    def _notify(self, event: str, session: Session | None) -> None:
        for sub in list(self._subscriptions):
            sub.callback(event, session)

    def close(self) -> None:
        self._subscriptions.clear()

    async def aclose(self) -> None:
        self.close()


# ---------------------------------------------------------------------------
# In-memory auth (SUPABASE_DISABLED=1)
# ---------------------------------------------------------------------------


@dataclass
class _AuthUser:
    id: str
    email: str
    salt: bytes
    password_hash: bytes
    metadata: dict[str, Any] = field(default_factory=dict)


def _hash_password(password: str, salt: bytes) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", password.encode(), salt, 100_000)


class InMemoryAuthDirectory:
    """Process-wide stand-in for the hosted auth service.

    Sign-ups are confirmed immediately and receive a session.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._users: dict[str, _AuthUser] = {}  # by normalized email
        self._tokens: dict[str, str] = {}  # access token -> identity

    def register(self, email: str, password: str, metadata: dict[str, Any]) -> _AuthUser:
        key = email.strip().lower()
        with self._lock:
            if key in self._users:
                raise AuthError("User already registered", AuthError.USER_EXISTS)
            salt = secrets.token_bytes(16)
            user = _AuthUser(
                id=str(uuid.uuid4()),
                email=key,
                salt=salt,
                password_hash=_hash_password(password, salt),
                metadata=dict(metadata),
            )
            self._users[key] = user
            return user

    def authenticate(self, email: str, password: str) -> _AuthUser:
        user = self._users.get(email.strip().lower())
        if user is None or not hmac.compare_digest(
            user.password_hash, _hash_password(password, user.salt)
        ):
            raise AuthError("Invalid login credentials", AuthError.INVALID_CREDENTIALS)
        return user

    def issue(self, user: _AuthUser) -> Session:
        token = secrets.token_urlsafe(32)
        with self._lock:
            self._tokens[token] = user.id
        return Session(
            identity=user.id,
            email=user.email,
            access_token=token,
            metadata=dict(user.metadata),
        )

    def resolve(self, token: str) -> Session | None:
        identity = self._tokens.get(token)
        if identity is None:
            return None
        for user in self._users.values():
            if user.id == identity:
                return Session(
                    identity=user.id,
                    email=user.email,
                    access_token=token,
                    metadata=dict(user.metadata),
                )
        return None

    def revoke(self, token: str) -> None:
        with self._lock:
            self._tokens.pop(token, None)

    def clear(self) -> None:
        with self._lock:
            self._users.clear()
            self._tokens.clear()


_MEM_DIRECTORY = InMemoryAuthDirectory()


def get_memory_directory() -> InMemoryAuthDirectory:
    return _MEM_DIRECTORY


class InMemorySessionStore(_CallbackRegistry):
    def __init__(self, directory: InMemoryAuthDirectory, access_token: str | None = None) -> None:
        super().__init__()
        self.directory = directory
        self._access_token = access_token
        self._session: Session | None = None

    async def sign_in_with_password(self, email: str, password: str) -> Session:
        user = self.directory.authenticate(email, password)
        session = self.directory.issue(user)
        self._set(session)
        self._notify(SIGNED_IN, session)
        return session

    async def sign_up(self, email: str, password: str, metadata: dict[str, Any]) -> SignUpResult:
        user = self.directory.register(email, password, metadata)
        session = self.directory.issue(user)
        self._set(session)
        self._notify(SIGNED_IN, session)
        return SignUpResult(identity=user.id, email=user.email, session=session)

    async def sign_out(self) -> None:
        if self._access_token is None:
            raise AuthError("No active session", AuthError.NOT_SIGNED_IN)
        self.directory.revoke(self._access_token)
        self._set(None)
        self._notify(SIGNED_OUT, None)

    async def get_current_session(self) -> Session | None:
        if self._session is not None:
            return self._session
        if self._access_token is None:
            return None
        self._session = self.directory.resolve(self._access_token)
        return self._session

    def _set(self, session: Session | None) -> None:
        self._session = session
        self._access_token = session.access_token if session else None


# ---------------------------------------------------------------------------
# Supabase auth
# ---------------------------------------------------------------------------


def _to_session(raw: Any) -> Session:
    user = raw.user
    return Session(
        identity=user.id,
        email=user.email,
        access_token=raw.access_token,
        refresh_token=raw.refresh_token,
        metadata=dict(user.user_metadata or {}),
    )


def _auth_error(exc: Exception) -> AuthError:
    status = getattr(exc, "status", None)
    code = getattr(exc, "code", None)
    message = getattr(exc, "message", None) or str(exc)
    if code == "user_already_exists" or "already registered" in message.lower():
        return AuthError(message, AuthError.USER_EXISTS)
    if status is None or status >= 500:
        return AuthError(f"Authentication service unavailable: {message}", AuthError.UNAVAILABLE)
    return AuthError(message, AuthError.INVALID_CREDENTIALS)


class SupabaseSessionStore(_CallbackRegistry):
    """Session store over a dedicated async Supabase client.

    With ``access_token`` the store represents an existing bearer session
    (API requests); without it, the client's own session is used.
    """

    def __init__(self, client: AsyncClient, access_token: str | None = None) -> None:
        super().__init__()
        self.client = client
        self._access_token = access_token
        self._upstream = client.auth.on_auth_state_change(self._relay)

    def _relay(self, event: str, raw: Any) -> None:
        session = _to_session(raw) if raw is not None and raw.user is not None else None
        if session is not None:
            self._access_token = session.access_token
        self._notify(str(event), session)

    async def sign_in_with_password(self, email: str, password: str) -> Session:  # pragma: no cover - network
        try:
            res = await self.client.auth.sign_in_with_password({"email": email, "password": password})
        except Exception as exc:
            raise _auth_error(exc) from exc
        if res.session is None:
            raise AuthError("Invalid login credentials", AuthError.INVALID_CREDENTIALS)
        return _to_session(res.session)

    async def sign_up(self, email: str, password: str, metadata: dict[str, Any]) -> SignUpResult:  # pragma: no cover - network
        try:
            res = await self.client.auth.sign_up(
                {"email": email, "password": password, "options": {"data": metadata}}
            )
        except Exception as exc:
            raise _auth_error(exc) from exc
        if res.user is None:
            raise AuthError("Sign-up did not return a user", AuthError.UNAVAILABLE)
        session = _to_session(res.session) if res.session is not None else None
        return SignUpResult(identity=res.user.id, email=res.user.email, session=session)

    async def sign_out(self) -> None:  # pragma: no cover - network
        token = self._access_token
        if token is None:
            raise AuthError("No active session", AuthError.NOT_SIGNED_IN)
        try:
            await self.client.auth.admin.sign_out(token)
        except Exception as exc:
            raise _auth_error(exc) from exc
        self._access_token = None
        self._notify(SIGNED_OUT, None)

    async def get_current_session(self) -> Session | None:  # pragma: no cover - network
        if self._access_token is None:
            try:
                raw = await self.client.auth.get_session()
            except Exception as exc:
                raise _auth_error(exc) from exc
            return _to_session(raw) if raw is not None else None
        try:
            res = await self.client.auth.get_user(self._access_token)
        except Exception as exc:
            err = _auth_error(exc)
            if err.code == AuthError.UNAVAILABLE:
                raise err from exc
            logger.info("Rejected bearer token: %s", err)
            return None
        if res is None or res.user is None:
            return None
        user = res.user
        return Session(
            identity=user.id,
            email=user.email,
            access_token=self._access_token,
            metadata=dict(user.user_metadata or {}),
        )

    def close(self) -> None:
        self._upstream.unsubscribe()
        super().close()

    async def aclose(self) -> None:
        """Unsubscribe and release the auth client's HTTP connections."""
        self.close()
        await self.client.auth.close()


async def create_session_store(access_token: str | None = None):
    """Supabase-backed store when configured, in-memory store otherwise."""
    client = await create_auth_client()
    if client is None:
        return InMemorySessionStore(get_memory_directory(), access_token)
    return SupabaseSessionStore(client, access_token)  # pragma: no cover - network
