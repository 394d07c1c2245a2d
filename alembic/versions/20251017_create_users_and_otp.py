"""create users and otp tables

Revision ID: 20251017_users_otp
Revises:
Create Date: 2025-10-17 00:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20251017_users_otp"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=120), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("password", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=32), nullable=True),
        sa.Column(
            "account_status",
            sa.String(length=32),
            nullable=False,
            server_default="PENDING_VALIDATION",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_email", "users", ["email"])
    op.create_index(
        "uq_users_email_active",
        "users",
        ["email"],
        unique=True,
        postgresql_where=sa.text("account_status <> 'DELETED'"),
        sqlite_where=sa.text("account_status <> 'DELETED'"),
    )

    op.create_table(
        "otp",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("otp", sa.String(length=16), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column("otp_status", sa.String(length=16), nullable=False, server_default="CREATED"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_otp_user_id", "otp", ["user_id"])
    op.create_index(
        "uq_otp_user_active",
        "otp",
        ["user_id"],
        unique=True,
        postgresql_where=sa.text("otp_status = 'CREATED'"),
        sqlite_where=sa.text("otp_status = 'CREATED'"),
    )


def downgrade() -> None:
    op.drop_index("uq_otp_user_active", table_name="otp")
    op.drop_index("ix_otp_user_id", table_name="otp")
    op.drop_table("otp")
    op.drop_index("uq_users_email_active", table_name="users")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
