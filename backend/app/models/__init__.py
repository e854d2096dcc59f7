"""Aggregate model imports for Alembic auto-detection."""

from app.models.workspace import Workspace, WorkspaceStatus  # noqa: F401
from app.models.profile import Profile  # noqa: F401
from app.models.service import Service  # noqa: F401
from app.models.inventory import InventoryItem  # noqa: F401
