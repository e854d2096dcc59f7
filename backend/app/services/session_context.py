"""Session context: who is signed in and which workspace they belong to.

One context per request, built by `app.auth.deps.get_session_context`
and handed to everything that needs the profile (wizard, routers).

Lifecycle:
  handle_auth_event(SIGNED_IN, identity)  → resolve profile (bounded)
  refresh()                                → re-read after writes
  teardown()                               → cancel pending resolution

Resolution is bounded by `profile_resolution_timeout_seconds`: once the
ceiling passes `loading` flips to False even if the fetch is still in
flight, so callers fall back to "no workspace" instead of hanging. A
late fetch still lands on the context unless a newer event superseded
it. Fetch failures are logged and leave the profile unset; "no profile"
is a normal state, never an exception.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass

from pydantic import BaseModel

from app.models.workspace import WorkspaceStatus
from app.store import RecordStore, RecordStoreError

logger = logging.getLogger(__name__)


class AuthEvent(str, enum.Enum):
    INITIAL_SESSION = "initial_session"
    SIGNED_IN = "signed_in"
    SIGNED_OUT = "signed_out"
    TOKEN_REFRESHED = "token_refreshed"
    USER_UPDATED = "user_updated"


@dataclass(frozen=True)
class Identity:
    """Authenticated caller as asserted by the identity provider."""
    user_id: str
    email: str | None = None


class WorkspaceSummary(BaseModel):
    name: str | None = None
    status: WorkspaceStatus
    onboarding_step: int | None = None


class Profile(BaseModel):
    id: str
    user_id: str
    workspace_id: str | None = None
    display_name: str | None = None
    workspace: WorkspaceSummary | None = None


@dataclass
class RefreshResult:
    ok: bool
    error: str | None = None


class SessionContext:
    def __init__(self, store: RecordStore, resolution_timeout: float = 5.0):
        self._store = store
        self._resolution_timeout = resolution_timeout
        self._resolution: asyncio.Task | None = None
        # Bumped on every auth event; stale fetches compare against it
        self._generation = 0

        self.identity: Identity | None = None
        self.profile: Profile | None = None
        self.loading = True

    # ── Derived fields ──────────────────────────────────────

    def current_profile(self) -> Profile | None:
        return self.profile

    @property
    def workspace_id(self) -> str | None:
        return self.profile.workspace_id if self.profile else None

    @property
    def workspace_status(self) -> WorkspaceStatus | None:
        if self.profile and self.profile.workspace:
            return self.profile.workspace.status
        return None

    @property
    def onboarding_step(self) -> int | None:
        if self.profile and self.profile.workspace:
            return self.profile.workspace.onboarding_step
        return None

    # ── Resolution ──────────────────────────────────────────

    async def _fetch_profile(self, user_id: str, generation: int) -> None:
        try:
            data = await self._store.read_profile(user_id)
        except RecordStoreError as exc:
            logger.error("Error fetching profile for user %s: %s", user_id, exc)
            return

        if generation != self._generation:
            logger.debug("Discarding stale profile fetch for user %s", user_id)
            return
        if data is None:
            logger.info("No profile found for user %s", user_id)
            self.profile = None
            return
        self.profile = Profile.model_validate(data)

    async def _cancel_pending(self) -> None:
        """Cancel an in-flight resolution and wait for it to unwind.

        The store shares one DB session, so the next read must not start
        while the previous one is still running.
        """
        task, self._resolution = self._resolution, None
        if task is None:
            return
        if not task.done():
            task.cancel()
        await asyncio.gather(task, return_exceptions=True)

    async def handle_auth_event(self, event: AuthEvent, identity: Identity | None) -> None:
        """React to an identity-provider event.

        Returns once the profile is resolved or the resolution ceiling
        elapsed; `loading` is False either way.
        """
        self._generation += 1
        await self._cancel_pending()

        if event == AuthEvent.SIGNED_OUT or identity is None:
            self.identity = None
            self.profile = None
            self.loading = False
            return

        if self.identity is None or self.identity.user_id != identity.user_id:
            self.profile = None
        self.identity = identity
        self.loading = True
        task = asyncio.create_task(self._fetch_profile(identity.user_id, self._generation))
        self._resolution = task
        try:
            done, _ = await asyncio.wait({task}, timeout=self._resolution_timeout)
            if done:
                task.result()
            else:
                logger.warning(
                    "Profile resolution for user %s exceeded %.1fs; continuing without workspace",
                    identity.user_id,
                    self._resolution_timeout,
                )
        finally:
            self.loading = False

    async def refresh(self) -> RefreshResult:
        """Re-read the profile and joined workspace fields from the store."""
        if self.identity is None:
            return RefreshResult(ok=False, error="Not signed in")

        # A newer read supersedes any resolution still in flight
        self._generation += 1
        await self._cancel_pending()

        try:
            data = await self._store.read_profile(self.identity.user_id)
        except RecordStoreError as exc:
            logger.error("Profile refresh failed for user %s: %s", self.identity.user_id, exc)
            return RefreshResult(ok=False, error=exc.message)

        self.profile = Profile.model_validate(data) if data else None
        return RefreshResult(ok=True)

    async def teardown(self) -> None:
        self._generation += 1
        await self._cancel_pending()
