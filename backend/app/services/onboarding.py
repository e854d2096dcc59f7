"""Onboarding wizard: 7 content steps plus a terminal Activate step.

Steps:
  1 Workspace   save name/address/timezone/email (name required)
  2 Email       save support email, blank = skip
  3 Contact Form, 5 Forms, 7 Staff   continue/skip only
  4 Bookings    create a default service
  6 Inventory   create a default inventory item
  8 Activate    flip the workspace to active

Progress:
  - `workspace.onboarding_step` is the high-water mark. Every advance
    writes max(current_step + 1, persisted mark), so re-saving an earlier
    step never moves it backwards.
  - Workspace fields and the mark go out in one UPDATE. Service and
    inventory inserts are a separate write from the mark; if the mark
    write fails after an insert, the two stay out of sync (no rollback).
  - After every write attempt the session context is refreshed. The
    local step only advances when the write succeeded.
  - Indicators for steps above the mark are locked; Activate unlocks at 8.

Each transition returns a TransitionResult instead of raising, so the
HTTP layer chooses how to report it.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import re
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from pydantic import BaseModel, ValidationError

from app.models.workspace import WorkspaceStatus
from app.schemas.onboarding import (
    ContactEmailComplete,
    InventoryComplete,
    InventoryDraft,
    ServiceComplete,
    ServiceDraft,
    WorkspaceDetailsComplete,
    WorkspaceDraft,
)
from app.services.session_context import SessionContext
from app.store import Collection, RecordStore, RecordStoreError

logger = logging.getLogger(__name__)

STEP_NAMES = {
    1: "Workspace",
    2: "Email",
    3: "Contact Form",
    4: "Bookings",
    5: "Forms",
    6: "Inventory",
    7: "Staff",
    8: "Activate",
}
FIRST_STEP = 1
ACTIVATE_STEP = 8

SKIPPABLE_STEPS = {2, 3, 4, 5, 6, 7}


def slugify(value: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", value.lower()).strip("-")


# ── Results ─────────────────────────────────────────────────

class TransitionOutcome(str, enum.Enum):
    SUCCESS = "success"
    NOOP = "noop"
    VALIDATION_ERROR = "validation_error"
    TRANSIENT_ERROR = "transient_error"


@dataclass
class TransitionResult:
    outcome: TransitionOutcome
    message: str | None = None
    retryable: bool = False
    redirect_to: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome in (TransitionOutcome.SUCCESS, TransitionOutcome.NOOP)

    @classmethod
    def success(cls, message: str | None = None, redirect_to: str | None = None) -> "TransitionResult":
        return cls(TransitionOutcome.SUCCESS, message, redirect_to=redirect_to)

    @classmethod
    def noop(cls, message: str) -> "TransitionResult":
        return cls(TransitionOutcome.NOOP, message)

    @classmethod
    def invalid(cls, message: str) -> "TransitionResult":
        return cls(TransitionOutcome.VALIDATION_ERROR, message)

    @classmethod
    def transient(cls, message: str) -> "TransitionResult":
        return cls(TransitionOutcome.TRANSIENT_ERROR, message, retryable=True)


def _first_error(exc: ValidationError) -> str:
    error = exc.errors()[0]
    field_name = ".".join(str(loc) for loc in error["loc"])
    return f"{field_name}: {error['msg']}" if field_name else error["msg"]


# ── Wizard session (ephemeral view state) ───────────────────

@dataclass
class WizardSession:
    """Local state of one open wizard view. Never persisted."""
    id: str
    user_id: str
    workspace_id: str
    current_step: int = FIRST_STEP
    high_water_mark: int | None = None
    workspace_status: WorkspaceStatus | None = None
    workspace_draft: WorkspaceDraft = field(default_factory=WorkspaceDraft)
    service_draft: ServiceDraft = field(default_factory=ServiceDraft)
    inventory_draft: InventoryDraft = field(default_factory=InventoryDraft)
    is_saving: bool = False

    def is_completed(self, step: int) -> bool:
        return (self.high_water_mark or 0) > step

    def is_locked(self, step: int) -> bool:
        # Activate (8) unlocks only once the mark reaches 8
        return (self.high_water_mark or 0) < step and step != self.current_step


# ── State machine ───────────────────────────────────────────

class OnboardingWizard:
    """Transition logic over a WizardSession.

    Built per request with that request's store and session context;
    the WizardSession itself outlives the request.
    """

    def __init__(
        self,
        session: WizardSession,
        store: RecordStore,
        context: SessionContext,
        write_timeout: float = 10.0,
        activation_redirect: str = "/bookings",
        refresh_timeout: float = 5.0,
    ):
        self.session = session
        self._store = store
        self._context = context
        self._write_timeout = write_timeout
        self._refresh_timeout = refresh_timeout
        self._activation_redirect = activation_redirect

    # ── Entry ───────────────────────────────────────────────

    async def enter(self) -> TransitionResult:
        """Load persisted progress and drafts for the workspace."""
        try:
            workspace = await self._store.read_one(Collection.WORKSPACE, self.session.workspace_id)
        except RecordStoreError as exc:
            logger.warning("Wizard entry failed for workspace %s: %s", self.session.workspace_id, exc)
            return TransitionResult.transient("Could not load your workspace. Please try again.")
        if workspace is None:
            return TransitionResult.invalid("No workspace found")

        status = WorkspaceStatus(workspace["status"])
        mark = workspace.get("onboarding_step")
        self.session.workspace_status = status
        self.session.high_water_mark = mark

        if status == WorkspaceStatus.ACTIVE:
            # Live workspaces are edited from the start
            self.session.current_step = FIRST_STEP
        elif mark and mark >= FIRST_STEP:
            self.session.current_step = min(mark, ACTIVATE_STEP)
        else:
            self.session.current_step = FIRST_STEP

        self.session.workspace_draft = WorkspaceDraft(
            name=workspace.get("name") or "",
            address=workspace.get("address") or "",
            timezone=workspace.get("timezone") or "UTC",
            contact_email=workspace.get("contact_email") or "",
        )
        return TransitionResult.success()

    # ── Drafts ──────────────────────────────────────────────

    def update_draft(self, section: str, changes: BaseModel) -> None:
        """Apply a partial draft update. Purely local; raises ValidationError on bad values."""
        attr = f"{section}_draft"
        current = getattr(self.session, attr)
        data = changes.model_dump(exclude_unset=True)
        setattr(self.session, attr, type(current).model_validate({**current.model_dump(), **data}))

    # ── Progress helpers ────────────────────────────────────

    def next_high_water_mark(self) -> int:
        persisted = self._context.onboarding_step
        if persisted is None:
            persisted = self.session.high_water_mark
        return max(self.session.current_step + 1, persisted or 0)

    def _sync_from_context(self) -> None:
        if self._context.onboarding_step is not None:
            self.session.high_water_mark = self._context.onboarding_step
        if self._context.workspace_status is not None:
            self.session.workspace_status = self._context.workspace_status

    async def _guarded(self, operation: Callable[[], Awaitable[TransitionResult]]) -> TransitionResult:
        """Run a write sequence under the is_saving guard and a timeout."""
        if self.session.is_saving:
            return TransitionResult.transient("A save is already in progress")
        self.session.is_saving = True
        try:
            return await asyncio.wait_for(operation(), timeout=self._write_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Wizard write timed out after %.1fs (workspace %s, step %d)",
                self._write_timeout,
                self.session.workspace_id,
                self.session.current_step,
            )
            # The write may have committed before it stalled
            await self._resync()
            return TransitionResult.transient("Saving took too long. Please try again.")
        finally:
            self.session.is_saving = False

    async def _resync(self) -> None:
        """Refresh the context after a timed-out write, bounded on its own."""
        try:
            await asyncio.wait_for(self._context.refresh(), timeout=self._refresh_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Profile refresh after timed-out write exceeded %.1fs (workspace %s)",
                self._refresh_timeout,
                self.session.workspace_id,
            )
            return
        self._sync_from_context()

    async def _advance(
        self,
        write: Callable[[int], Awaitable[None]] | None,
        success_message: str | None,
        failure_message: str,
    ) -> TransitionResult:
        step = self.session.current_step
        mark = self.next_high_water_mark()

        async def sequence() -> TransitionResult:
            try:
                if write is not None:
                    await write(mark)
                else:
                    await self._store.update_fields(
                        Collection.WORKSPACE, self.session.workspace_id, {"onboarding_step": mark}
                    )
            except RecordStoreError as exc:
                logger.warning(
                    "Wizard step %d save failed for workspace %s: %s",
                    step,
                    self.session.workspace_id,
                    exc,
                )
                await self._context.refresh()
                self._sync_from_context()
                return TransitionResult.transient(failure_message)

            await self._context.refresh()
            self._sync_from_context()
            self.session.high_water_mark = max(mark, self.session.high_water_mark or 0)
            self.session.current_step = step + 1
            logger.info(
                "Workspace %s advanced past step %d (high-water mark %d)",
                self.session.workspace_id,
                step,
                mark,
            )
            return TransitionResult.success(success_message)

        return await self._guarded(sequence)

    # ── Advance-with-save ───────────────────────────────────

    async def save(self) -> TransitionResult:
        """Save the current step and move to the next one."""
        step = self.session.current_step
        if step == 1:
            return await self.save_workspace()
        if step == 2:
            return await self.save_email()
        if step == 4:
            return await self.save_service()
        if step == 6:
            return await self.save_inventory()
        if step in (3, 5, 7):
            return await self.skip()
        return TransitionResult.invalid("Use activate to finish setup")

    async def save_workspace(self) -> TransitionResult:
        if self.session.current_step != 1:
            return TransitionResult.invalid("Workspace details are saved on step 1")
        try:
            details = WorkspaceDetailsComplete(**self.session.workspace_draft.model_dump())
        except ValidationError as exc:
            if any(e["loc"] == ("name",) for e in exc.errors()):
                return TransitionResult.invalid("Business name is required")
            return TransitionResult.invalid(_first_error(exc))

        async def write(mark: int) -> None:
            await self._store.update_fields(
                Collection.WORKSPACE,
                self.session.workspace_id,
                {
                    "name": details.name,
                    "address": details.address,
                    "timezone": details.timezone,
                    "contact_email": details.contact_email,
                    "slug": slugify(details.name),
                    "onboarding_step": mark,
                },
            )

        return await self._advance(write, "Workspace saved!", "Error saving workspace")

    async def save_email(self) -> TransitionResult:
        if self.session.current_step != 2:
            return TransitionResult.invalid("The support email is saved on step 2")
        if not self.session.workspace_draft.contact_email.strip():
            return await self.skip()
        try:
            email = ContactEmailComplete(contact_email=self.session.workspace_draft.contact_email)
        except ValidationError:
            return TransitionResult.invalid("Enter a valid email address")

        async def write(mark: int) -> None:
            await self._store.update_fields(
                Collection.WORKSPACE,
                self.session.workspace_id,
                {"contact_email": email.contact_email, "onboarding_step": mark},
            )

        return await self._advance(write, "Email saved!", "Error saving email")

    async def save_service(self) -> TransitionResult:
        if self.session.current_step != 4:
            return TransitionResult.invalid("The default service is created on step 4")
        try:
            service = ServiceComplete(**self.session.service_draft.model_dump())
        except ValidationError as exc:
            return TransitionResult.invalid(_first_error(exc))

        async def write(mark: int) -> None:
            await self._store.insert_row(
                Collection.SERVICE,
                {
                    "workspace_id": self.session.workspace_id,
                    "name": service.name,
                    "duration": service.duration,
                    "price": service.price,
                    "location": service.location,
                    "slug": slugify(service.name),
                },
            )
            await self._store.update_fields(
                Collection.WORKSPACE, self.session.workspace_id, {"onboarding_step": mark}
            )
            self.session.service_draft = self.session.service_draft.model_copy(
                update={"name": "", "price": None, "location": ""}
            )

        return await self._advance(write, "Service created!", "Error creating service")

    async def save_inventory(self) -> TransitionResult:
        if self.session.current_step != 6:
            return TransitionResult.invalid("The first inventory item is added on step 6")
        try:
            item = InventoryComplete(**self.session.inventory_draft.model_dump())
        except ValidationError as exc:
            return TransitionResult.invalid(_first_error(exc))

        async def write(mark: int) -> None:
            await self._store.insert_row(
                Collection.INVENTORY_ITEM,
                {
                    "workspace_id": self.session.workspace_id,
                    "item_name": item.item_name,
                    "quantity": item.quantity,
                    "low_stock_threshold": item.low_stock_threshold,
                    "sku": f"SKU-{int(time.time() * 1000)}",
                },
            )
            await self._store.update_fields(
                Collection.WORKSPACE, self.session.workspace_id, {"onboarding_step": mark}
            )
            self.session.inventory_draft = self.session.inventory_draft.model_copy(
                update={"item_name": ""}
            )

        return await self._advance(write, "Item added!", "Error adding item")

    # ── Skip ────────────────────────────────────────────────

    async def skip(self) -> TransitionResult:
        if self.session.current_step not in SKIPPABLE_STEPS:
            name = STEP_NAMES[self.session.current_step]
            return TransitionResult.invalid(f"The {name} step cannot be skipped")
        return await self._advance(None, None, "Error saving progress")

    # ── Jump ────────────────────────────────────────────────

    def jump_to(self, step: int) -> TransitionResult:
        """Navigate by clicking a step indicator. Locked steps are a no-op."""
        if step not in STEP_NAMES:
            return TransitionResult.invalid(f"Unknown step: {step}")
        if self.session.is_locked(step):
            return TransitionResult.noop(f"Step {step} ({STEP_NAMES[step]}) is locked")
        self.session.current_step = step
        return TransitionResult.success()

    # ── Activate ────────────────────────────────────────────

    async def activate(self) -> TransitionResult:
        """Flip the workspace to active. One-way; no partial activation."""
        mark = max(self._context.onboarding_step or 0, self.session.high_water_mark or 0)
        if self.session.current_step != ACTIVATE_STEP or mark < ACTIVATE_STEP:
            return TransitionResult.invalid("Finish the setup steps before activating")

        async def sequence() -> TransitionResult:
            try:
                await self._store.update_fields(
                    Collection.WORKSPACE,
                    self.session.workspace_id,
                    {"status": WorkspaceStatus.ACTIVE},
                )
            except RecordStoreError as exc:
                logger.warning("Activation failed for workspace %s: %s", self.session.workspace_id, exc)
                await self._context.refresh()
                self._sync_from_context()
                return TransitionResult.transient("Activation failed")

            await self._context.refresh()
            self._sync_from_context()
            self.session.workspace_status = WorkspaceStatus.ACTIVE
            self.session.current_step = FIRST_STEP
            logger.info("Workspace %s activated", self.session.workspace_id)
            return TransitionResult.success("Workspace Active!", redirect_to=self._activation_redirect)

        return await self._guarded(sequence)
