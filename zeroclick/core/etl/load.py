import logging
from datetime import date
from typing import Dict, Any, List

from sqlalchemy import select, desc, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from zeroclick.core import models, schemas
from zeroclick.core.errors import UpstreamServiceError


# -----------------------------------------------------------------------------
# LOAD MODULE
# Purpose: the record store gateway. Append-only inserts, bounded reads.
# Rows are never updated or deleted from here.
# -----------------------------------------------------------------------------

logger = logging.getLogger(__name__)


def to_orm(record: schemas.CrmRecord) -> models.CrmRecord:
    """Map a finished record onto a table row (sentiment as text, date as DATE)."""
    data = record.model_dump()
    if record.sentiment is not None:
        data["sentiment"] = record.sentiment.value
    if record.follow_up_date is not None:
        data["follow_up_date"] = date.fromisoformat(record.follow_up_date)
    return models.CrmRecord(**data)


class RecordStore:
    """Gateway to the CRM table over one async session."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def insert(self, record: schemas.CrmRecord) -> models.CrmRecord:
        """
        Insert one full record in a single commit.
        Either the whole row lands or nothing does.
        """
        row = to_orm(record)
        try:
            self.db.add(row)
            await self.db.commit()
            await self.db.refresh(row)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Failed to insert CRM record: {e}")
            raise UpstreamServiceError("Failed to save the CRM record") from e

        logger.info(f"Inserted CRM record {row.id}")
        return row

    async def query(self, sql: str, row_limit: int) -> List[Dict[str, Any]]:
        """
        Run an already-guarded SELECT and return at most row_limit rows.

        The statement runs in a transaction that is always rolled back, and on
        PostgreSQL the transaction is marked READ ONLY before the query.
        """
        try:
            if self.db.get_bind().dialect.name == "postgresql":
                await self.db.execute(text("SET TRANSACTION READ ONLY"))
            result = await self.db.execute(text(sql))
            rows = [dict(row) for row in result.mappings().fetchmany(row_limit)]
        except SQLAlchemyError as e:
            logger.error(f"Search query failed: {type(e).__name__}")
            raise UpstreamServiceError("The search query could not be executed") from e
        finally:
            await self.db.rollback()

        return rows

    async def recent(self, limit: int = 50) -> List[models.CrmRecord]:
        """Latest records, newest first."""
        query = (
            select(models.CrmRecord)
            .order_by(desc(models.CrmRecord.created_at))
            .limit(limit)
        )
        try:
            result = await self.db.execute(query)
        except SQLAlchemyError as e:
            logger.error(f"Failed to fetch entries: {e}")
            raise UpstreamServiceError("Failed to fetch entries") from e
        return list(result.scalars().all())
