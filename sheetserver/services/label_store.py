"""
SheetServer — Label Store
===========================

What:  Contract for label → cell mappings and its async SQLAlchemy implementation.
How:   LabelStore is an ABC bound to one spreadsheet. SqlLabelStore runs its
       queries on the request's AsyncSession (see get_db_session); commit and
       rollback belong to that dependency.
Who:   The selection parser resolves labels through `resolve`; the dispatcher
       uses `find_similar` for the similarities relation and load/save/delete
       for the label resource.

Error Handling:
    SQLAlchemy errors are logged with their detail and re-raised as
    LabelStoreError, whose client-facing message is generic.

Similarity ranking (find_similar):
    1. exact match, ignoring case
    2. labels starting with the text
    3. labels containing the text
    Ties are ordered by lower-cased label. At most `count` mappings are returned.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional, Tuple

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from sheetserver.exceptions import LabelStoreError
from sheetserver.models.delta import LabelMapping
from sheetserver.models.label import LabelMappingRow
from sheetserver.models.reference import CellReference, LabelName

logger = logging.getLogger(__name__)


class LabelStore(ABC):
    """Label mappings of a single spreadsheet."""

    @abstractmethod
    async def find_similar(self, text: str, count: int) -> Tuple[LabelMapping, ...]:
        """Up to `count` mappings whose label resembles `text`, best match first."""
        ...

    @abstractmethod
    async def resolve(self, label: LabelName) -> Optional[CellReference]:
        """Target cell of `label`, or None when no mapping exists."""
        ...

    @abstractmethod
    async def load(self, label: LabelName) -> Optional[LabelMapping]:
        ...

    @abstractmethod
    async def save(self, mapping: LabelMapping) -> LabelMapping:
        """Create or replace the mapping for `mapping.label`."""
        ...

    @abstractmethod
    async def delete(self, label: LabelName) -> None:
        ...


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _to_mapping(row: LabelMappingRow) -> LabelMapping:
    return LabelMapping(LabelName(row.label), CellReference.parse(row.reference))


class SqlLabelStore(LabelStore):
    """LabelStore over the `label_mappings` table."""

    def __init__(self, session: AsyncSession, spreadsheet_id: str):
        self.session = session
        self.spreadsheet_id = spreadsheet_id

    def _wrap(self, operation: str, error: SQLAlchemyError) -> LabelStoreError:
        logger.error(
            "Label store %s failed for spreadsheet %s: %s",
            operation, self.spreadsheet_id, str(error),
        )
        return LabelStoreError(
            context={"operation": operation, "original_error": type(error).__name__}
        )

    async def _row(self, label: LabelName) -> Optional[LabelMappingRow]:
        result = await self.session.execute(
            select(LabelMappingRow).where(
                LabelMappingRow.spreadsheet_id == self.spreadsheet_id,
                LabelMappingRow.label_key == label.name.lower(),
            )
        )
        return result.scalar_one_or_none()

    async def find_similar(self, text: str, count: int) -> Tuple[LabelMapping, ...]:
        key = text.lower()
        if count <= 0 or not key:
            return ()
        try:
            result = await self.session.execute(
                select(LabelMappingRow).where(
                    LabelMappingRow.spreadsheet_id == self.spreadsheet_id,
                    LabelMappingRow.label_key.like(f"%{_escape_like(key)}%", escape="\\"),
                )
            )
            rows = result.scalars().all()
        except SQLAlchemyError as e:
            raise self._wrap("find_similar", e) from e

        def rank(row: LabelMappingRow):
            if row.label_key == key:
                return (0, row.label_key)
            if row.label_key.startswith(key):
                return (1, row.label_key)
            return (2, row.label_key)

        ranked = sorted(rows, key=rank)[:count]
        return tuple(_to_mapping(row) for row in ranked)

    async def resolve(self, label: LabelName) -> Optional[CellReference]:
        mapping = await self.load(label)
        return None if mapping is None else mapping.reference

    async def load(self, label: LabelName) -> Optional[LabelMapping]:
        try:
            row = await self._row(label)
        except SQLAlchemyError as e:
            raise self._wrap("load", e) from e
        return None if row is None else _to_mapping(row)

    async def save(self, mapping: LabelMapping) -> LabelMapping:
        reference = str(mapping.reference.relative())
        try:
            row = await self._row(mapping.label)
            if row is None:
                row = LabelMappingRow(
                    spreadsheet_id=self.spreadsheet_id,
                    label=mapping.label.name,
                    label_key=mapping.label.name.lower(),
                    reference=reference,
                )
                self.session.add(row)
            else:
                row.label = mapping.label.name
                row.reference = reference
            await self.session.flush()
        except SQLAlchemyError as e:
            raise self._wrap("save", e) from e
        logger.info(
            "Saved label %s -> %s in spreadsheet %s",
            mapping.label, reference, self.spreadsheet_id,
        )
        return _to_mapping(row)

    async def delete(self, label: LabelName) -> None:
        try:
            await self.session.execute(
                delete(LabelMappingRow).where(
                    LabelMappingRow.spreadsheet_id == self.spreadsheet_id,
                    LabelMappingRow.label_key == label.name.lower(),
                )
            )
        except SQLAlchemyError as e:
            raise self._wrap("delete", e) from e
        logger.info("Deleted label %s in spreadsheet %s", label, self.spreadsheet_id)
