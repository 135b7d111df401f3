"""
SheetServer — Label Mapping SQLAlchemy Model
==============================================

What:  ORM model for the `label_mappings` table: one row per label per spreadsheet.
How:   Inherits from the shared DeclarativeBase; Alembic reads Base.metadata
       for migrations and the app lifespan creates the table for SQLite setups.
Who:   Used by SqlLabelStore only. Routes and the dispatcher never see rows,
       they work with LabelMapping values.

Table Design:
    - label:       name as written by the client (case preserved for display)
    - label_key:   lower-cased label; lookups are case-insensitive
    - reference:   target cell in A1 text (e.g. "B2")
    - unique (spreadsheet_id, label_key): a label maps to exactly one cell
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime, Index, Integer, String, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column

from sheetserver.database import Base
from sheetserver.models.reference import LABEL_MAX_LENGTH


class LabelMappingRow(Base):
    """
    Persistent label → cell mapping.

    Query Patterns:
        - resolve / load:  WHERE spreadsheet_id = :id AND label_key = :key
        - find_similar:    WHERE spreadsheet_id = :id AND label_key LIKE :pattern
    """

    __tablename__ = "label_mappings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    spreadsheet_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        comment="Spreadsheet the label belongs to",
    )

    label: Mapped[str] = mapped_column(
        String(LABEL_MAX_LENGTH),
        nullable=False,
        comment="Label name as supplied by the client",
    )

    label_key: Mapped[str] = mapped_column(
        String(LABEL_MAX_LENGTH),
        nullable=False,
        comment="Lower-cased label used for case-insensitive lookup",
    )

    reference: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        comment="Target cell reference in A1 notation",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    __table_args__ = (
        UniqueConstraint("spreadsheet_id", "label_key", name="uq_label_mappings_sheet_label"),
        Index("idx_label_mappings_sheet", "spreadsheet_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<LabelMappingRow(spreadsheet_id='{self.spreadsheet_id}', "
            f"label='{self.label}', reference='{self.reference}')>"
        )
