"""Initial migration - create the gate_records table.

Revision ID: 001_gate_records
Revises:
Create Date: 2026-10-19

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "001_gate_records"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # Tokens, rate windows and cached responses, one namespace each
    op.create_table(
        "gate_records",
        sa.Column("namespace", sa.String(32), nullable=False),
        sa.Column("key", sa.String(255), nullable=False),
        sa.Column("value", sa.Text(), nullable=False),
        sa.Column("expires_at", sa.Float(), nullable=True),
        sa.Column("revision", sa.String(32), nullable=False),
        sa.PrimaryKeyConstraint("namespace", "key", name="pk_gate_records"),
    )
    op.create_index(
        "ix_gate_records_namespace_expires_at",
        "gate_records",
        ["namespace", "expires_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_gate_records_namespace_expires_at", table_name="gate_records")
    op.drop_table("gate_records")
