"""Onboarding wizard: 7 setup steps plus activation, with save/resume.

Endpoints (prefix /api/onboarding):
  POST   /sessions                          → enter the wizard (reuses an open view)
  GET    /sessions/{id}                     → current step, locks, drafts
  DELETE /sessions/{id}                     → leave the wizard
  PATCH  /sessions/{id}/drafts/{section}    → edit unsaved form fields
  POST   /sessions/{id}/save                → save current step and advance
  POST   /sessions/{id}/skip                → advance without saving fields
  POST   /sessions/{id}/steps/{step}        → click a step indicator
  POST   /sessions/{id}/activate            → go live

Design:
  - A wizard session is view state held in memory; progress itself lives
    on the workspace row (`onboarding_step`, `status`).
  - Rejected transitions come back as 422, failed or timed-out writes as
    retryable 503. Both leave the wizard on the step it was on.
  - Clicking a locked indicator is not an error: 200 with outcome "noop".
"""

from fastapi import APIRouter, Depends, Response, status

from app.auth.deps import get_record_store, get_session_context, get_wizard_registry
from app.config import settings
from app.middleware.exceptions import (
    BusinessLogicError,
    NoWorkspaceError,
    ResourceNotFoundError,
    TransientWriteError,
)
from app.schemas.onboarding import (
    DraftsOut,
    InventoryDraftUpdate,
    ServiceDraftUpdate,
    StepOut,
    TransitionOut,
    WizardStateOut,
    WorkspaceDraftUpdate,
)
from app.services.onboarding import (
    STEP_NAMES,
    OnboardingWizard,
    TransitionOutcome,
    TransitionResult,
    WizardSession,
)
from app.services.session_context import SessionContext
from app.services.wizard_sessions import WizardSessionRegistry
from app.store import SqlRecordStore

router = APIRouter()


# ── Helpers ──────────────────────────────────────────────────

def _make_state(session: WizardSession) -> WizardStateOut:
    return WizardStateOut(
        session_id=session.id,
        workspace_id=session.workspace_id,
        workspace_status=session.workspace_status.value if session.workspace_status else None,
        current_step=session.current_step,
        onboarding_step=session.high_water_mark,
        is_saving=session.is_saving,
        steps=[
            StepOut(
                number=number,
                name=name,
                is_current=session.current_step == number,
                is_completed=session.is_completed(number),
                is_locked=session.is_locked(number),
            )
            for number, name in STEP_NAMES.items()
        ],
        drafts=DraftsOut(
            workspace=session.workspace_draft,
            service=session.service_draft,
            inventory=session.inventory_draft,
        ),
    )


def _make_wizard(
    session: WizardSession, store: SqlRecordStore, context: SessionContext
) -> OnboardingWizard:
    return OnboardingWizard(
        session,
        store,
        context,
        write_timeout=settings.wizard_write_timeout_seconds,
        activation_redirect=settings.activation_redirect,
        refresh_timeout=settings.profile_resolution_timeout_seconds,
    )


def _load_session(
    session_id: str, context: SessionContext, registry: WizardSessionRegistry
) -> WizardSession:
    if context.workspace_id is None:
        raise NoWorkspaceError()
    session = registry.get(session_id, context.identity.user_id)
    if session is None:
        raise ResourceNotFoundError("Wizard session", session_id)
    return session


def _respond(result: TransitionResult, session: WizardSession) -> TransitionOut:
    if result.outcome == TransitionOutcome.VALIDATION_ERROR:
        raise BusinessLogicError(
            result.message,
            error_code="STEP_REJECTED",
            details={"current_step": session.current_step},
        )
    if result.outcome == TransitionOutcome.TRANSIENT_ERROR:
        raise TransientWriteError(
            result.message,
            details={"current_step": session.current_step},
        )
    return TransitionOut(
        outcome=result.outcome.value,
        message=result.message,
        redirect_to=result.redirect_to,
        state=_make_state(session),
    )


# ── Enter / inspect / leave ──────────────────────────────────

@router.post("/sessions", response_model=WizardStateOut, status_code=status.HTTP_201_CREATED)
async def enter_wizard(
    store: SqlRecordStore = Depends(get_record_store),
    context: SessionContext = Depends(get_session_context),
    registry: WizardSessionRegistry = Depends(get_wizard_registry),
):
    """Open a wizard session positioned at the workspace's saved progress."""
    if context.workspace_id is None:
        raise NoWorkspaceError()

    session = registry.open(context.identity.user_id, context.workspace_id)
    result = await _make_wizard(session, store, context).enter()
    if not result.ok:
        registry.discard(session.id)
        if result.outcome == TransitionOutcome.VALIDATION_ERROR:
            raise NoWorkspaceError()
        raise TransientWriteError(result.message)
    return _make_state(session)


@router.get("/sessions/{session_id}", response_model=WizardStateOut)
async def get_wizard(
    session_id: str,
    context: SessionContext = Depends(get_session_context),
    registry: WizardSessionRegistry = Depends(get_wizard_registry),
):
    return _make_state(_load_session(session_id, context, registry))


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def leave_wizard(
    session_id: str,
    context: SessionContext = Depends(get_session_context),
    registry: WizardSessionRegistry = Depends(get_wizard_registry),
):
    """Leave the wizard view. Persisted progress is untouched."""
    session = _load_session(session_id, context, registry)
    registry.discard(session.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ── Drafts ───────────────────────────────────────────────────

@router.patch("/sessions/{session_id}/drafts/workspace", response_model=WizardStateOut)
async def update_workspace_draft(
    session_id: str,
    body: WorkspaceDraftUpdate,
    store: SqlRecordStore = Depends(get_record_store),
    context: SessionContext = Depends(get_session_context),
    registry: WizardSessionRegistry = Depends(get_wizard_registry),
):
    session = _load_session(session_id, context, registry)
    _make_wizard(session, store, context).update_draft("workspace", body)
    return _make_state(session)


@router.patch("/sessions/{session_id}/drafts/service", response_model=WizardStateOut)
async def update_service_draft(
    session_id: str,
    body: ServiceDraftUpdate,
    store: SqlRecordStore = Depends(get_record_store),
    context: SessionContext = Depends(get_session_context),
    registry: WizardSessionRegistry = Depends(get_wizard_registry),
):
    session = _load_session(session_id, context, registry)
    _make_wizard(session, store, context).update_draft("service", body)
    return _make_state(session)


@router.patch("/sessions/{session_id}/drafts/inventory", response_model=WizardStateOut)
async def update_inventory_draft(
    session_id: str,
    body: InventoryDraftUpdate,
    store: SqlRecordStore = Depends(get_record_store),
    context: SessionContext = Depends(get_session_context),
    registry: WizardSessionRegistry = Depends(get_wizard_registry),
):
    session = _load_session(session_id, context, registry)
    _make_wizard(session, store, context).update_draft("inventory", body)
    return _make_state(session)


# ── Transitions ──────────────────────────────────────────────

@router.post("/sessions/{session_id}/save", response_model=TransitionOut)
async def save_step(
    session_id: str,
    store: SqlRecordStore = Depends(get_record_store),
    context: SessionContext = Depends(get_session_context),
    registry: WizardSessionRegistry = Depends(get_wizard_registry),
):
    """Save the current step's data and advance."""
    session = _load_session(session_id, context, registry)
    result = await _make_wizard(session, store, context).save()
    return _respond(result, session)


@router.post("/sessions/{session_id}/skip", response_model=TransitionOut)
async def skip_step(
    session_id: str,
    store: SqlRecordStore = Depends(get_record_store),
    context: SessionContext = Depends(get_session_context),
    registry: WizardSessionRegistry = Depends(get_wizard_registry),
):
    session = _load_session(session_id, context, registry)
    result = await _make_wizard(session, store, context).skip()
    return _respond(result, session)


@router.post("/sessions/{session_id}/steps/{step}", response_model=TransitionOut)
async def jump_to_step(
    session_id: str,
    step: int,
    store: SqlRecordStore = Depends(get_record_store),
    context: SessionContext = Depends(get_session_context),
    registry: WizardSessionRegistry = Depends(get_wizard_registry),
):
    """Click a step indicator. Locked steps leave the wizard where it is."""
    session = _load_session(session_id, context, registry)
    result = _make_wizard(session, store, context).jump_to(step)
    return _respond(result, session)


@router.post("/sessions/{session_id}/activate", response_model=TransitionOut)
async def activate_workspace(
    session_id: str,
    store: SqlRecordStore = Depends(get_record_store),
    context: SessionContext = Depends(get_session_context),
    registry: WizardSessionRegistry = Depends(get_wizard_registry),
):
    """Make the workspace live. The wizard closes and the client redirects."""
    session = _load_session(session_id, context, registry)
    result = await _make_wizard(session, store, context).activate()
    response = _respond(result, session)
    registry.discard(session.id)
    return response
