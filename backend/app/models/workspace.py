"""Workspace: the tenant / business unit every operational record hangs off.

One row per business, created at sign-up with `status=provisional`.
`onboarding_step` is the onboarding high-water mark: the highest wizard
step ever durably reached, not the step currently on screen. It only
ever moves forward.
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum as SAEnum, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class WorkspaceStatus(str, enum.Enum):
    PROVISIONAL = "provisional"
    ACTIVE = "active"
    INACTIVE = "inactive"


class Workspace(Base):
    __tablename__ = "workspaces"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str | None] = mapped_column(String(500))
    timezone: Mapped[str] = mapped_column(String(64), default="UTC")
    contact_email: Mapped[str | None] = mapped_column(String(255))
    slug: Mapped[str | None] = mapped_column(String(255), index=True)

    status: Mapped[WorkspaceStatus] = mapped_column(
        SAEnum(
            WorkspaceStatus,
            name="workspace_status",
            values_callable=lambda e: [m.value for m in e],
        ),
        default=WorkspaceStatus.PROVISIONAL,
    )
    # Null until the wizard first saves progress
    onboarding_step: Mapped[int | None] = mapped_column(Integer)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
