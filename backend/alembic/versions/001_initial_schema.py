"""Initial schema - users, stores, menu and files.

Revision ID: 001
Revises: None
Create Date: 2026-10-17

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _base_columns() -> list[sa.Column]:
    return [
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    # --- Users ---

    op.create_table(
        "user",
        *_base_columns(),
        sa.Column("username", sa.String(50), unique=True, nullable=False),
        sa.Column("password", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("active", sa.Boolean, server_default="false"),
    )
    op.create_index("ix_user_username", "user", ["username"])
    op.create_index("ix_user_role", "user", ["role"])

    op.create_table(
        "profile",
        *_base_columns(),
        sa.Column("user_id", sa.Uuid(as_uuid=True), sa.ForeignKey("user.id"), unique=True, nullable=False),
        sa.Column("first_name", sa.String(100), nullable=True),
        sa.Column("last_name", sa.String(100), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("mobile", sa.String(20), nullable=True),
    )

    # --- Stores ---

    op.create_table(
        "store_type",
        *_base_columns(),
        sa.Column("title", sa.String(100), nullable=False),
    )

    op.create_table(
        "store",
        *_base_columns(),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("active", sa.Boolean, server_default="false"),
        sa.Column("user_id", sa.Uuid(as_uuid=True), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("store_type_id", sa.Uuid(as_uuid=True), sa.ForeignKey("store_type.id"), nullable=False),
    )
    op.create_index("ix_store_user_id", "store", ["user_id"])
    op.create_index("ix_store_store_type_id", "store", ["store_type_id"])

    op.create_table(
        "store_branch",
        *_base_columns(),
        sa.Column("store_id", sa.Uuid(as_uuid=True), sa.ForeignKey("store.id"), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("address", sa.Text, nullable=True),
        sa.Column("active", sa.Boolean, server_default="true"),
    )

    # --- Menu ---

    op.create_table(
        "category",
        *_base_columns(),
        sa.Column("store_id", sa.Uuid(as_uuid=True), sa.ForeignKey("store.id"), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("position", sa.Integer, server_default="0"),
        sa.Column("active", sa.Boolean, server_default="true"),
    )

    op.create_table(
        "item",
        *_base_columns(),
        sa.Column("category_id", sa.Uuid(as_uuid=True), sa.ForeignKey("category.id"), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("active", sa.Boolean, server_default="true"),
    )

    # --- Files ---

    op.create_table(
        "file",
        *_base_columns(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("path", sa.String(1024), nullable=False),
        sa.Column("size", sa.BigInteger, nullable=False),
        sa.Column("mime_type", sa.String(100), nullable=False),
        sa.Column("published", sa.Boolean, server_default="false"),
        sa.Column("storage_type", sa.String(20), server_default="local"),
        sa.Column("owner_id", sa.Uuid(as_uuid=True), sa.ForeignKey("user.id"), nullable=False),
    )


def downgrade() -> None:
    for table in ("file", "item", "category", "store_branch", "store", "store_type", "profile"):
        op.drop_table(table)
    op.drop_index("ix_user_role", table_name="user")
    op.drop_index("ix_user_username", table_name="user")
    op.drop_table("user")
