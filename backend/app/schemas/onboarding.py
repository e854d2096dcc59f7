"""Pydantic schemas for the onboarding wizard.

Drafts hold whatever the user has typed so far and accept anything.
The `*Update` variants are partial (PATCH) bodies. The `*Complete`
variants are used for validation when a step is saved, mirroring the
required-field rules of each step.
"""

from zoneinfo import available_timezones

from pydantic import BaseModel, EmailStr, Field, field_validator

KNOWN_TIMEZONES = available_timezones()


# ── Drafts (local, unsaved form state) ──────────────────────

class WorkspaceDraft(BaseModel):
    name: str = ""
    address: str = ""
    timezone: str = "UTC"
    contact_email: str = ""


class ServiceDraft(BaseModel):
    name: str = ""
    duration: int = 60  # minutes
    price: float | None = None
    location: str = ""


class InventoryDraft(BaseModel):
    item_name: str = ""
    quantity: int = 10
    low_stock_threshold: int = 5


class WorkspaceDraftUpdate(BaseModel):
    name: str | None = None
    address: str | None = None
    timezone: str | None = None
    contact_email: str | None = None


class ServiceDraftUpdate(BaseModel):
    name: str | None = None
    duration: int | None = None
    price: float | None = None
    location: str | None = None


class InventoryDraftUpdate(BaseModel):
    item_name: str | None = None
    quantity: int | None = None
    low_stock_threshold: int | None = None


# ── Save-time validation ────────────────────────────────────

def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


def check_timezone(value: str) -> str:
    if value not in KNOWN_TIMEZONES:
        raise ValueError(f"Unknown timezone: {value}")
    return value


class WorkspaceDetailsComplete(BaseModel):
    """Business name is required to save step 1."""
    name: str = Field(min_length=1, max_length=255)
    address: str | None = None
    timezone: str = "UTC"
    contact_email: EmailStr | None = None

    model_config = {"str_strip_whitespace": True}

    @field_validator("address", "contact_email", mode="before")
    @classmethod
    def optional_blank(cls, value):
        return _blank_to_none(value)

    @field_validator("timezone")
    @classmethod
    def known_timezone(cls, value):
        return check_timezone(value)


class ContactEmailComplete(BaseModel):
    contact_email: EmailStr

    model_config = {"str_strip_whitespace": True}


class ServiceComplete(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    duration: int = Field(gt=0)
    price: float | None = Field(default=None, ge=0)
    location: str | None = None

    model_config = {"str_strip_whitespace": True}

    @field_validator("location", mode="before")
    @classmethod
    def optional_blank(cls, value):
        return _blank_to_none(value)


class InventoryComplete(BaseModel):
    item_name: str = Field(min_length=1, max_length=255)
    quantity: int = Field(ge=0)
    low_stock_threshold: int = Field(ge=0)

    model_config = {"str_strip_whitespace": True}


# ── Responses ───────────────────────────────────────────────

class StepOut(BaseModel):
    number: int
    name: str
    is_current: bool
    is_completed: bool
    is_locked: bool


class DraftsOut(BaseModel):
    workspace: WorkspaceDraft
    service: ServiceDraft
    inventory: InventoryDraft


class WizardStateOut(BaseModel):
    session_id: str
    workspace_id: str
    workspace_status: str | None
    current_step: int
    onboarding_step: int | None
    is_saving: bool
    steps: list[StepOut]
    drafts: DraftsOut


class TransitionOut(BaseModel):
    outcome: str
    message: str | None = None
    redirect_to: str | None = None
    state: WizardStateOut
