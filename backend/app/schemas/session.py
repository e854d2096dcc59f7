from pydantic import BaseModel

from app.services.session_context import Profile


class SessionOut(BaseModel):
    """Snapshot of the caller's session context. `profile` may be null."""
    loading: bool
    user_id: str | None
    email: str | None
    profile: Profile | None
    workspace_id: str | None
    workspace_status: str | None
    onboarding_step: int | None
