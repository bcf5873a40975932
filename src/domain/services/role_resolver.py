from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace

from src.domain.entities.profile import ProfileEntity
from src.domain.entities.role import RoleSet
from src.domain.entities.session import ResolvedSession, Session
from src.domain.errors import AuthError, InvalidRoleError, ProfileCreateError, ProfileLookupError
from src.domain.ports import ProfileLookup, SessionStore, Subscription

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SignUpOutcome:
    identity: str
    role: str
    profile: ProfileEntity | None
    session: Session | None

    @property
    def profile_created(self) -> bool:
        return self.profile is not None


class RoleResolver:
    """Combines session store state and the profile lookup into one view.

    One resolver belongs to one client. It is the only writer of its
    ``ResolvedSession``; everything else reads ``state``.

    Profile lookups are sequenced with a generation counter: every observed
    session change bumps the generation, and a lookup only writes its result
    if the generation it was issued under is still current. An absent session
    clears the profile synchronously, so nothing waits on a lookup that is
    still in flight.
    """

    def __init__(self, store: SessionStore, profiles: ProfileLookup, roles: RoleSet) -> None:
        self.store = store
        self.profiles = profiles
        self.roles = roles
        self._state = ResolvedSession()
        self._generation = 0
        self._lookup_task: asyncio.Task | None = None
        self._subscription: Subscription | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._started = False
        self._closed = False
        self._event_seen = False

    @property
    def state(self) -> ResolvedSession:
        return self._state

    async def __aenter__(self) -> RoleResolver:
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.close()

    async def start(self) -> ResolvedSession:
        """Subscribe to session changes, probe the current session once and settle."""
        if self._started:
            raise RuntimeError("Role resolver already started")
        self._started = True
        self._loop = asyncio.get_running_loop()
        # Subscribe before probing so a change during the probe is not lost.
        self._subscription = self.store.on_session_change(self._on_session_change)
        try:
            session = await self.store.get_current_session()
        except AuthError as exc:
            logger.warning("Initial session check failed: %s", exc)
            session = None
        # A change event that arrived during the probe is newer than the probe result.
        if not self._event_seen:
            self._observe(session)
        await self.settled()
        self._state = replace(self._state, loading=False)
        return self._state

    async def settled(self) -> ResolvedSession:
        """Wait until no profile lookup for the current generation is pending."""
        while self._lookup_task is not None and not self._lookup_task.done():
            await asyncio.wait({self._lookup_task})
        return self._state

    def close(self) -> None:
        self._closed = True
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        if self._lookup_task is not None and not self._lookup_task.done():
            self._lookup_task.cancel()
        self._lookup_task = None

    async def sign_in(self, email: str, password: str) -> ResolvedSession:
        self._require_started()
        session = await self.store.sign_in_with_password(email, password)
        self._observe(session)
        return await self.settled()

    async def sign_up(
        self,
        email: str,
        password: str,
        role: str | None = None,
        display_name: str | None = None,
    ) -> SignUpOutcome:
        """Create the identity, then its single profile row.

        A failed profile insert leaves the identity without a profile; the
        outcome reports ``profile_created=False`` and ``reconcile_profile``
        is the way to finish the account.
        """
        self._require_started()
        role = self.roles.validate(role)
        result = await self.store.sign_up(
            email, password, {"role": role, "display_name": display_name}
        )
        if result.session is not None:
            self._observe(result.session)
        try:
            profile = await self.profiles.insert(result.identity, role, display_name, email)
        except ProfileCreateError as exc:
            logger.error(
                "Profile creation failed for new identity %s, reconciliation required: %s",
                result.identity,
                exc,
            )
            await self.settled()
            return SignUpOutcome(
                identity=result.identity, role=role, profile=None, session=result.session
            )
        self._adopt(result.identity, profile)
        return SignUpOutcome(
            identity=result.identity, role=role, profile=profile, session=result.session
        )

    async def sign_out(self) -> None:
        self._require_started()
        await self.store.sign_out()
        self._observe(None)

    async def reconcile_profile(self) -> ProfileEntity:
        """Create the missing profile of the current identity from its sign-up metadata.

        Returns the existing profile unchanged when there is one.
        """
        self._require_started()
        state = await self.settled()
        if state.identity is None or state.session is None:
            raise AuthError("Sign in before reconciling a profile", AuthError.NOT_SIGNED_IN)
        if state.profile is not None:
            return state.profile
        identity = state.identity
        profile = await self.profiles.fetch(identity)
        if profile is None:
            metadata = state.session.metadata
            role = self.roles.validate(metadata.get("role"))
            profile = await self.profiles.insert(
                identity, role, metadata.get("display_name"), state.session.email
            )
            logger.info("Reconciled missing profile for %s with role %s", identity, role)
        elif profile.role not in self.roles:
            raise InvalidRoleError(profile.role, self.roles.roles)
        self._adopt(identity, profile)
        return profile

    def _require_started(self) -> None:
        if not self._started or self._closed:
            raise RuntimeError("Role resolver is not running")

    def _on_session_change(self, event: str, session: Session | None) -> None:
        if self._closed or self._loop is None:
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is not self._loop:
            self._loop.call_soon_threadsafe(self._handle_event, event, session)
            return
        self._handle_event(event, session)

    def _handle_event(self, event: str, session: Session | None) -> None:
        if self._closed:
            return
        logger.debug("Session change event %s", event)
        self._event_seen = True
        self._observe(session)

    def _observe(self, session: Session | None) -> None:
        if session is None:
            self._generation += 1
            self._lookup_task = None
            self._state = replace(self._state, identity=None, profile=None, session=None)
            return
        if self._state.identity is not None and session == self._state.session:
            return  # already observed, e.g. the store announced it before returning
        self._generation += 1
        same_identity = session.identity == self._state.identity
        self._state = replace(
            self._state,
            identity=session.identity,
            session=session,
            profile=self._state.profile if same_identity else None,
        )
        assert self._loop is not None
        self._lookup_task = self._loop.create_task(self._lookup(self._generation, session.identity))

    async def _lookup(self, generation: int, identity: str) -> None:
        try:
            profile = await self.profiles.fetch(identity)
        except ProfileLookupError as exc:
            logger.warning("Profile lookup failed for %s: %s", identity, exc)
            profile = None
        except Exception:
            logger.exception("Unexpected error looking up profile for %s", identity)
            profile = None
        if generation != self._generation:
            logger.debug("Discarding superseded profile lookup for %s", identity)
            return
        if profile is not None and profile.role not in self.roles:
            logger.warning(
                "Profile %s carries role '%s' outside the configured role set", identity, profile.role
            )
            profile = None
        self._state = replace(self._state, profile=profile)

    def _adopt(self, identity: str, profile: ProfileEntity) -> None:
        if self._state.identity != identity:
            return
        # supersedes a lookup that may have run before the row existed
        self._generation += 1
        self._lookup_task = None
        self._state = replace(self._state, profile=profile)
