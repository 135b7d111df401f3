"""Create label_mappings table

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

What:  Creates the `label_mappings` table backing SqlLabelStore.
How:   Portable column types only, so the same migration runs on PostgreSQL
       and SQLite.

Rollback: downgrade() drops the table (all label mappings are lost).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the label_mappings table; see sheetserver/models/label.py."""
    op.create_table(
        "label_mappings",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column(
            "spreadsheet_id",
            sa.String(64),
            nullable=False,
            comment="Spreadsheet the label belongs to",
        ),
        sa.Column(
            "label",
            sa.String(255),
            nullable=False,
            comment="Label name as supplied by the client",
        ),
        sa.Column(
            "label_key",
            sa.String(255),
            nullable=False,
            comment="Lower-cased label used for case-insensitive lookup",
        ),
        sa.Column(
            "reference",
            sa.String(32),
            nullable=False,
            comment="Target cell reference in A1 notation",
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("spreadsheet_id", "label_key", name="uq_label_mappings_sheet_label"),
    )

    op.create_index("idx_label_mappings_sheet", "label_mappings", ["spreadsheet_id"])


def downgrade() -> None:
    """Drop the label_mappings table and its index."""
    op.drop_index("idx_label_mappings_sheet", table_name="label_mappings")
    op.drop_table("label_mappings")
