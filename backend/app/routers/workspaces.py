from fastapi import APIRouter, Depends, HTTPException, status

from app.auth.deps import get_record_store, get_session_context
from app.middleware.exceptions import NoWorkspaceError
from app.models.workspace import WorkspaceStatus
from app.schemas.workspace import WorkspaceCreate, WorkspaceOut
from app.services.onboarding import slugify
from app.services.session_context import SessionContext
from app.store import Collection, SqlRecordStore

router = APIRouter()


@router.post("/", response_model=WorkspaceOut, status_code=status.HTTP_201_CREATED)
async def create_workspace(
    body: WorkspaceCreate,
    store: SqlRecordStore = Depends(get_record_store),
    context: SessionContext = Depends(get_session_context),
):
    """Sign up a new business: provisional workspace + the caller's profile."""
    await context.refresh()
    if context.workspace_id:
        raise HTTPException(status_code=400, detail="User already belongs to a workspace")

    workspace = await store.insert_row(
        Collection.WORKSPACE,
        {
            "name": body.business_name,
            "timezone": body.timezone,
            "slug": slugify(body.business_name),
            "status": WorkspaceStatus.PROVISIONAL,
        },
    )

    profile = context.current_profile()
    if profile:
        changes = {"workspace_id": workspace["id"]}
        if body.display_name:
            changes["display_name"] = body.display_name
        await store.update_fields(Collection.PROFILE, profile.id, changes)
    else:
        await store.insert_row(
            Collection.PROFILE,
            {
                "user_id": context.identity.user_id,
                "workspace_id": workspace["id"],
                "display_name": body.display_name,
            },
        )

    await context.refresh()
    return WorkspaceOut(**workspace)


@router.get("/me", response_model=WorkspaceOut)
async def get_my_workspace(
    store: SqlRecordStore = Depends(get_record_store),
    context: SessionContext = Depends(get_session_context),
):
    if context.workspace_id is None:
        raise NoWorkspaceError()
    workspace = await store.read_one(Collection.WORKSPACE, context.workspace_id)
    if workspace is None:
        raise NoWorkspaceError()
    return WorkspaceOut(**workspace)
