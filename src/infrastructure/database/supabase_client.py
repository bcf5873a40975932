from __future__ import annotations

import os

from supabase import AsyncClient, AsyncClientOptions, Client, acreate_client, create_client

from src.infrastructure.settings import supabase_disabled


def _credentials(prefer_service_key: bool = False) -> tuple[str, str] | None:
    url = os.getenv("SUPABASE_URL")
    key = os.getenv("SUPABASE_ANON_KEY")
    if prefer_service_key:
        key = os.getenv("SUPABASE_SERVICE_KEY") or key
    if supabase_disabled() or not url or not key:
        return None
    return url, key


# Table access only. Auth state never lives on this client: every session
# store gets its own client from create_auth_client().
_CLIENT_SINGLETON: Client | None = None


def get_supabase_client() -> Client | None:
    global _CLIENT_SINGLETON
    creds = _credentials(prefer_service_key=True)
    if creds is None:
        return None
    if _CLIENT_SINGLETON is None:
        _CLIENT_SINGLETON = create_client(*creds)
    return _CLIENT_SINGLETON


async def create_auth_client() -> AsyncClient | None:
    """Fresh async client owning the auth state of a single session store.

    The client lives for one request: no background token refresh and no
    persisted session. The owner closes it with ``client.auth.close()``.
    """
    creds = _credentials()
    if creds is None:
        return None
    options = AsyncClientOptions(auto_refresh_token=False, persist_session=False)
    return await acreate_client(*creds, options=options)
