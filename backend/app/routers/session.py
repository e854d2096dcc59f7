"""Session context endpoints.

  GET    /api/session          → who am I, which workspace, how far along
  POST   /api/session/refresh  → re-read profile + workspace from the store
  DELETE /api/session          → sign-out: drop the caller's wizard sessions

A missing profile is a normal answer here (profile = null), so the
client can render its "no workspace" fallback.
"""

import logging

from fastapi import APIRouter, Depends, Response, status

from app.auth.deps import get_session_context, get_wizard_registry
from app.middleware.exceptions import CareOpsException
from app.schemas.session import SessionOut
from app.services.session_context import AuthEvent, SessionContext
from app.services.wizard_sessions import WizardSessionRegistry

logger = logging.getLogger(__name__)

router = APIRouter()


def _make_session_out(context: SessionContext) -> SessionOut:
    status_value = context.workspace_status
    return SessionOut(
        loading=context.loading,
        user_id=context.identity.user_id if context.identity else None,
        email=context.identity.email if context.identity else None,
        profile=context.current_profile(),
        workspace_id=context.workspace_id,
        workspace_status=status_value.value if status_value else None,
        onboarding_step=context.onboarding_step,
    )


@router.get("", response_model=SessionOut)
async def get_session(context: SessionContext = Depends(get_session_context)):
    return _make_session_out(context)


@router.post("/refresh", response_model=SessionOut)
async def refresh_session(context: SessionContext = Depends(get_session_context)):
    result = await context.refresh()
    if not result.ok:
        raise CareOpsException(
            "Could not load your profile. Please try again.",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            error_code="PROFILE_FETCH_FAILED",
            details={"retryable": True},
        )
    return _make_session_out(context)


@router.delete("", status_code=status.HTTP_204_NO_CONTENT)
async def sign_out(
    context: SessionContext = Depends(get_session_context),
    registry: WizardSessionRegistry = Depends(get_wizard_registry),
):
    user_id = context.identity.user_id
    dropped = registry.discard_for_user(user_id)
    await context.handle_auth_event(AuthEvent.SIGNED_OUT, None)
    logger.info("User %s signed out (%d wizard sessions closed)", user_id, dropped)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
