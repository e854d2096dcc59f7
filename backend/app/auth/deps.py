"""FastAPI dependencies for identity and per-request session state.

Dependencies:
  get_current_identity   → decode the bearer token, return Identity
  get_record_store       → record store bound to the request's DB session
  get_session_context    → SessionContext resolved for the caller
  get_wizard_registry    → process-wide registry of open wizard sessions
"""

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.jwt import decode_token
from app.config import settings
from app.database import get_db
from app.services.session_context import AuthEvent, Identity, SessionContext
from app.services.wizard_sessions import WizardSessionRegistry
from app.store import SqlRecordStore

# Tokens come from the identity provider; there is no local login route
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/v1/token")


async def get_current_identity(token: str = Depends(oauth2_scheme)) -> Identity:
    """Decode the JWT and return the caller's identity."""
    payload = decode_token(token)
    user_id: str | None = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return Identity(user_id=user_id, email=payload.get("email"))


def get_record_store(db: AsyncSession = Depends(get_db)) -> SqlRecordStore:
    return SqlRecordStore(db)


async def get_session_context(
    identity: Identity = Depends(get_current_identity),
    store: SqlRecordStore = Depends(get_record_store),
):
    """Yield a SessionContext signed in as the caller.

    Resolution is bounded by `profile_resolution_timeout_seconds`; the
    context may come back without a profile, which callers must handle.
    """
    context = SessionContext(
        store, resolution_timeout=settings.profile_resolution_timeout_seconds
    )
    await context.handle_auth_event(AuthEvent.SIGNED_IN, identity)
    try:
        yield context
    finally:
        await context.teardown()


def get_wizard_registry(request: Request) -> WizardSessionRegistry:
    return request.app.state.wizard_sessions
