"""Initial schema: workspaces, profiles, services, inventory.

Revision ID: 0001
Revises:
Create Date: 2026-10-19
"""

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

from alembic import op
import sqlalchemy as sa


workspace_status = sa.Enum("provisional", "active", "inactive", name="workspace_status")


def upgrade() -> None:
    op.create_table(
        "workspaces",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("address", sa.String(500)),
        sa.Column("timezone", sa.String(64), server_default="UTC"),
        sa.Column("contact_email", sa.String(255)),
        sa.Column("slug", sa.String(255)),
        sa.Column("status", workspace_status, server_default="provisional", nullable=False),
        sa.Column("onboarding_step", sa.Integer()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_workspaces_slug", "workspaces", ["slug"])

    op.create_table(
        "profiles",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("workspace_id", sa.String(36), sa.ForeignKey("workspaces.id")),
        sa.Column("display_name", sa.String(255)),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_profiles_user_id", "profiles", ["user_id"], unique=True)

    op.create_table(
        "services",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("workspace_id", sa.String(36), sa.ForeignKey("workspaces.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("duration", sa.Integer(), server_default="60"),
        sa.Column("price", sa.Numeric(10, 2)),
        sa.Column("location", sa.String(255)),
        sa.Column("slug", sa.String(255)),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_services_workspace_id", "services", ["workspace_id"])

    op.create_table(
        "inventory",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("workspace_id", sa.String(36), sa.ForeignKey("workspaces.id"), nullable=False),
        sa.Column("item_name", sa.String(255), nullable=False),
        sa.Column("quantity", sa.Integer(), server_default="0"),
        sa.Column("low_stock_threshold", sa.Integer(), server_default="5"),
        sa.Column("unit", sa.String(20)),
        sa.Column("sku", sa.String(64)),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_inventory_workspace_id", "inventory", ["workspace_id"])


def downgrade() -> None:
    op.drop_index("ix_inventory_workspace_id", table_name="inventory")
    op.drop_table("inventory")
    op.drop_index("ix_services_workspace_id", table_name="services")
    op.drop_table("services")
    op.drop_index("ix_profiles_user_id", table_name="profiles")
    op.drop_table("profiles")
    op.drop_index("ix_workspaces_slug", table_name="workspaces")
    op.drop_table("workspaces")
    workspace_status.drop(op.get_bind(), checkfirst=True)
