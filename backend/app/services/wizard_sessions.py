"""In-memory registry of open wizard sessions.

A wizard session lives from "enter the wizard view" to "leave it"
(explicit DELETE, activation, or sign-out). Sessions are owned by the
user who opened them; lookups by anyone else behave as not found.

Single-process only: sessions are not shared between workers.
"""

import logging
import uuid

from app.services.onboarding import WizardSession

logger = logging.getLogger(__name__)


class WizardSessionRegistry:
    def __init__(self):
        self._sessions: dict[str, WizardSession] = {}

    def open(self, user_id: str, workspace_id: str) -> WizardSession:
        """Return the user's open session for the workspace, or start one.

        Re-entering the wizard reuses the existing view and drops views of
        any other workspace, so a user holds at most one session.
        """
        for session in [s for s in self._sessions.values() if s.user_id == user_id]:
            if session.workspace_id == workspace_id:
                logger.debug("Reusing wizard session %s for user %s", session.id, user_id)
                return session
            del self._sessions[session.id]

        session = WizardSession(
            id=uuid.uuid4().hex,
            user_id=user_id,
            workspace_id=workspace_id,
        )
        self._sessions[session.id] = session
        logger.debug("Opened wizard session %s for user %s", session.id, user_id)
        return session

    def get(self, session_id: str, user_id: str) -> WizardSession | None:
        session = self._sessions.get(session_id)
        if session is None or session.user_id != user_id:
            return None
        return session

    def discard(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    def discard_for_user(self, user_id: str) -> int:
        """Drop every session a user holds (sign-out). Returns how many."""
        ids = [sid for sid, s in self._sessions.items() if s.user_id == user_id]
        for sid in ids:
            del self._sessions[sid]
        return len(ids)

    def __len__(self) -> int:
        return len(self._sessions)
