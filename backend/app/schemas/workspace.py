from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from app.schemas.onboarding import check_timezone


class WorkspaceCreate(BaseModel):
    """Sign-up body: the business being set up and who is setting it up."""
    business_name: str = Field(min_length=1, max_length=255)
    display_name: str | None = None
    timezone: str = "UTC"

    model_config = {"str_strip_whitespace": True}

    @field_validator("timezone")
    @classmethod
    def known_timezone(cls, value):
        return check_timezone(value)


class WorkspaceOut(BaseModel):
    id: str
    name: str
    address: str | None
    timezone: str
    contact_email: str | None
    slug: str | None
    status: str
    onboarding_step: int | None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}
