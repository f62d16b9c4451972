"""
Infrastructure layer: Relational persistence of streets and bloom reports.

Reports are append-only. A street's current status is never stored; it is
the most recent report for that street, ordered by timestamp and then by id.
"""
import asyncio
import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import case, func, or_, select, text
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from app.config import settings
from app.domain.models import BloomStatus, BloomStatusReport, NeighborhoodStats
from app.infrastructure.api_constants import APIConstants
from app.infrastructure.database import Database, is_connection_error
from app.infrastructure.db_models import BloomStatusReportRecord, Street

logger = logging.getLogger(__name__)

# Retry policy for side-effect free reads that lose their connection
read_retry = retry(
    stop=stop_after_attempt(settings.db_max_retry_attempts),
    wait=wait_exponential(
        multiplier=1,
        min=settings.db_retry_min_wait,
        max=settings.db_retry_max_wait,
    ),
    retry=retry_if_exception(is_connection_error),
    reraise=True,
)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class BloomStatusStore:
    """
    Store for street records and their bloom status reports.
    """

    def __init__(self, database: Database, stats_timeout_ms: Optional[int] = None):
        """
        Initialize the store.

        Args:
            database: Database owning the engine and session factory
            stats_timeout_ms: Time budget of the neighborhood aggregate
        """
        self.database = database
        self.session_factory = database.session_factory
        self.stats_timeout_ms = stats_timeout_ms or settings.stats_statement_timeout_ms

    @read_retry
    async def get_street_status(self, street: str) -> Optional[BloomStatusReport]:
        """
        Return the current status of a street.

        Args:
            street: Street name

        Returns:
            The most recent report joined with the street's tree count, or
            None if the street is unknown or has no report
        """
        stmt = (
            select(BloomStatusReportRecord, Street)
            .join(Street, Street.id == BloomStatusReportRecord.street_id)
            .where(Street.name == street)
            .order_by(BloomStatusReportRecord.timestamp.desc(), BloomStatusReportRecord.id.desc())
            .limit(1)
        )
        async with self.session_factory() as session:
            row = (await session.execute(stmt)).first()

        if row is None:
            logger.debug(f"No status found for street {street}")
            return None
        record, street_row = row
        return self._to_report(record, street_row, tree_count=street_row.tree_count)

    async def update_status(
        self,
        street: str,
        status: BloomStatus,
        neighborhood: str,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        tree_count: Optional[int] = None,
    ) -> BloomStatusReport:
        """
        Record a new report, creating or refreshing the street.

        The street upsert and the report insert run in one transaction, so
        either both take effect or neither does.

        Args:
            street: Street name
            status: Reported status
            neighborhood: Neighborhood of the street
            latitude: Optional report latitude
            longitude: Optional report longitude
            tree_count: Optional street tree count; refreshes the stored count

        Returns:
            The persisted report with id and server timestamp
        """
        async with self.session_factory() as session:
            async with session.begin():
                street_id, current_tree_count = await self._upsert_street(
                    session, street, neighborhood, tree_count
                )
                record = await self._insert_report(
                    session, street_id, status, latitude, longitude, current_tree_count
                )

        logger.info(f"Stored {status.value} report {record.id} for {street} ({neighborhood})")
        return BloomStatusReport(
            id=record.id,
            street=street,
            status=record.status,
            timestamp=_as_utc(record.timestamp),
            reporter=record.reporter,
            neighborhood=neighborhood,
            latitude=record.latitude,
            longitude=record.longitude,
            tree_count=current_tree_count,
        )

    async def _upsert_street(
        self,
        session: AsyncSession,
        street: str,
        neighborhood: str,
        tree_count: Optional[int],
    ) -> tuple[int, int]:
        insert = pg_insert if self.database.dialect == "postgresql" else sqlite_insert
        stmt = insert(Street).values(
            name=street,
            neighborhood=neighborhood,
            tree_count=tree_count or 0,
        )
        if tree_count is not None:
            update = {"tree_count": stmt.excluded.tree_count}
        else:
            # No new count: keep the stored one, but still touch the row so it is returned
            update = {"name": stmt.excluded.name}
        stmt = stmt.on_conflict_do_update(
            index_elements=[Street.name, Street.neighborhood],
            set_=update,
        ).returning(Street.id, Street.tree_count)

        row = (await session.execute(stmt)).one()
        return row.id, row.tree_count

    async def _insert_report(
        self,
        session: AsyncSession,
        street_id: int,
        status: BloomStatus,
        latitude: Optional[float],
        longitude: Optional[float],
        tree_count: Optional[int],
    ) -> BloomStatusReportRecord:
        record = BloomStatusReportRecord(
            street_id=street_id,
            status=status,
            timestamp=datetime.now(timezone.utc),
            reporter=APIConstants.ANONYMOUS_REPORTER,
            latitude=latitude,
            longitude=longitude,
            tree_count=tree_count,
        )
        session.add(record)
        await session.flush()
        return record

    async def get_neighborhood_stats(self, neighborhood: str) -> NeighborhoodStats:
        """
        Count a neighborhood's streets by current status.

        Streets without any report count as unknown. The query runs under
        a time budget; a timeout or database error yields zero counts with
        an error marker instead of raising.

        Args:
            neighborhood: Neighborhood name

        Returns:
            NeighborhoodStats
        """
        started = asyncio.get_running_loop().time()
        try:
            stats = await asyncio.wait_for(
                self._query_neighborhood_stats(neighborhood),
                timeout=self.stats_timeout_ms / 1000,
            )
        except asyncio.TimeoutError:
            logger.error(f"Neighborhood stats for {neighborhood} exceeded {self.stats_timeout_ms}ms")
            return NeighborhoodStats(error="Query timed out")
        except SQLAlchemyError as e:
            logger.error(f"Error in get_neighborhood_stats for {neighborhood}: {e}")
            return NeighborhoodStats(error=str(getattr(e, "orig", None) or e))

        duration_ms = (asyncio.get_running_loop().time() - started) * 1000
        logger.debug(f"Neighborhood stats for {neighborhood} computed in {duration_ms:.0f}ms")
        return stats

    async def _query_neighborhood_stats(self, neighborhood: str) -> NeighborhoodStats:
        report = BloomStatusReportRecord
        ranked = (
            select(
                Street.id.label("street_id"),
                report.status.label("status"),
                report.timestamp.label("timestamp"),
                func.row_number().over(
                    partition_by=Street.id,
                    order_by=(report.timestamp.desc(), report.id.desc()),
                ).label("rn"),
            )
            .select_from(Street)
            .outerjoin(report, report.street_id == Street.id)
            .where(Street.neighborhood == neighborhood)
            .subquery()
        )
        latest = select(ranked).where(ranked.c.rn == 1).subquery()
        stmt = select(
            func.count(latest.c.street_id).label("total_streets"),
            func.count(case((latest.c.status == BloomStatus.BLOOMING, 1))).label("blooming_count"),
            func.count(
                case((or_(latest.c.status.is_(None), latest.c.status == BloomStatus.UNKNOWN), 1))
            ).label("unknown_count"),
            func.max(latest.c.timestamp).label("last_updated"),
        )

        async with self.session_factory() as session:
            async with session.begin():
                if self.database.dialect == "postgresql":
                    await session.execute(
                        text(f"SET LOCAL statement_timeout = {int(self.stats_timeout_ms)}")
                    )
                row = (await session.execute(stmt)).one_or_none()

        if row is None:
            return NeighborhoodStats()
        return NeighborhoodStats(
            total_streets=row.total_streets or 0,
            blooming_count=row.blooming_count or 0,
            unknown_count=row.unknown_count or 0,
            last_updated=_as_utc(row.last_updated),
        )

    @read_retry
    async def get_recent_reports(
        self, limit: int = APIConstants.DEFAULT_RECENT_LIMIT
    ) -> List[BloomStatusReport]:
        """
        Return the most recent reports across all streets, newest first.
        """
        stmt = (
            select(BloomStatusReportRecord, Street)
            .join(Street, Street.id == BloomStatusReportRecord.street_id)
            .order_by(BloomStatusReportRecord.timestamp.desc(), BloomStatusReportRecord.id.desc())
            .limit(limit)
        )
        async with self.session_factory() as session:
            rows = (await session.execute(stmt)).all()

        return [
            self._to_report(record, street_row, tree_count=street_row.tree_count)
            for record, street_row in rows
        ]

    @staticmethod
    def _to_report(
        record: BloomStatusReportRecord,
        street_row: Street,
        tree_count: Optional[int],
    ) -> BloomStatusReport:
        return BloomStatusReport(
            id=record.id,
            street=street_row.name,
            status=record.status,
            timestamp=_as_utc(record.timestamp),
            reporter=record.reporter,
            neighborhood=street_row.neighborhood,
            latitude=record.latitude,
            longitude=record.longitude,
            tree_count=tree_count,
        )
