"""Initial schema - role, permission, schema_definition.

Revision ID: 001
Revises:
Create Date: 2026-10-17

"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "role",
        sa.Column("id", sa.UUID(), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("description", sa.String(255), nullable=True),
        sa.Column("is_tenant_specific", sa.Boolean(), nullable=False, server_default=sa.false()),
    )
    op.create_index("ix_role_name", "role", ["name"], unique=True)

    op.create_table(
        "permission",
        sa.Column("id", sa.UUID(), primary_key=True),
        sa.Column("role_id", sa.UUID(), sa.ForeignKey("role.id", ondelete="CASCADE"), nullable=False),
        sa.Column("collection", sa.String(255), nullable=False),
        sa.Column("action", sa.String(20), nullable=False),
        sa.Column("fields", postgresql.JSONB(), nullable=True),
        sa.Column("conditions", postgresql.JSONB(), nullable=True),
        sa.Column("rel_conditions", postgresql.JSONB(), nullable=False, server_default="{}"),
        sa.Column("default_values", postgresql.JSONB(), nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "action IN ('create', 'read', 'update', 'delete')", name="ck_permission_action"
        ),
    )
    op.create_index(
        "ix_permission_role_collection_action",
        "permission",
        ["role_id", "collection", "action"],
        unique=True,
    )

    op.create_table(
        "schema_definition",
        sa.Column("collection_name", sa.String(255), primary_key=True),
        sa.Column("definition", postgresql.JSONB(), nullable=False),
        sa.Column(
            "updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()
        ),
    )

    op.execute("""
        INSERT INTO role (id, name, description, is_tenant_specific) VALUES
        (gen_random_uuid(), 'public', 'Requests without a bearer token', false),
        (gen_random_uuid(), 'administrator', 'Bypasses every permission', false)
    """)


def downgrade() -> None:
    op.drop_table("schema_definition")
    op.drop_index("ix_permission_role_collection_action", table_name="permission")
    op.drop_table("permission")
    op.drop_index("ix_role_name", table_name="role")
    op.drop_table("role")
