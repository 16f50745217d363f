"""Persistence for waste reports.

Every mutation is a single conditional UPDATE so a validated change set is
either written as a whole or not at all.
"""

from contextlib import asynccontextmanager
from typing import Any, List, Mapping, Optional
import logging

from sqlalchemy import update as sa_update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select, func
from sqlmodel.ext.asyncio.session import AsyncSession

from .access import scope_query
from .errors import ExternalServiceError, NotFound, StaleReport
from .models import AssignmentAudit, WasteReport

logger = logging.getLogger("app.store")


class ReportStore:
    def __init__(self, session: AsyncSession):
        self._session = session

    @asynccontextmanager
    async def _guard(self, action: str):
        try:
            yield
        except SQLAlchemyError as exc:
            await self._session.rollback()
            logger.error("Report store failed to %s: %s", action, exc)
            raise ExternalServiceError(f"Report store unavailable, could not {action}") from exc

    async def insert(self, report: WasteReport) -> WasteReport:
        async with self._guard("save the report"):
            self._session.add(report)
            await self._session.commit()
            await self._session.refresh(report)
        logger.info("Stored report %s from %s", report.id, report.reporter_id)
        return report

    async def get(self, report_id: str) -> WasteReport:
        async with self._guard("load the report"):
            report = await self._session.get(WasteReport, report_id)
        if report is None:
            raise NotFound("Report not found")
        return report

    async def update(
        self,
        report_id: str,
        fields: Mapping[str, Any],
        expected_version: Optional[int] = None,
        audit: Optional[AssignmentAudit] = None,
    ) -> WasteReport:
        """Write `fields` and bump the version in one statement.

        When `expected_version` is given the write only happens if nobody else
        updated the report in between; otherwise `StaleReport` is raised.
        An assignment audit row, if given, commits in the same transaction.
        """
        statement = sa_update(WasteReport).where(WasteReport.id == report_id)
        if expected_version is not None:
            statement = statement.where(WasteReport.version == expected_version)
        statement = (
            statement.values(**dict(fields), version=WasteReport.version + 1)
            # The row is re-read below with populate_existing.
            .execution_options(synchronize_session=False)
        )

        async with self._guard("update the report"):
            result = await self._session.execute(statement)
            if result.rowcount == 0:
                await self._session.rollback()
                if await self._session.get(WasteReport, report_id) is None:
                    raise NotFound("Report not found")
                raise StaleReport("Report was modified by someone else; reload and try again")
            if audit is not None:
                self._session.add(audit)
            await self._session.commit()
            report = await self._session.get(WasteReport, report_id, populate_existing=True)
        return report

    def _select(self, criteria, viewer):
        statement = select(WasteReport)
        for criterion in criteria:
            statement = statement.where(criterion)
        if viewer is not None:
            statement = scope_query(viewer.role, viewer.id, statement)
        return statement

    async def query(
        self,
        *criteria,
        viewer=None,
        order_by=None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[WasteReport]:
        """Reports matching every criterion, optionally narrowed to what `viewer` may see."""
        statement = self._select(criteria, viewer)
        statement = statement.order_by(order_by if order_by is not None else WasteReport.created_at.desc())
        if offset:
            statement = statement.offset(offset)
        if limit is not None:
            statement = statement.limit(limit)
        async with self._guard("query reports"):
            result = await self._session.exec(statement)
            return list(result.all())

    async def count(self, *criteria, viewer=None) -> int:
        statement = select(func.count(WasteReport.id))
        for criterion in criteria:
            statement = statement.where(criterion)
        if viewer is not None:
            statement = scope_query(viewer.role, viewer.id, statement)
        async with self._guard("count reports"):
            result = await self._session.exec(statement)
            return result.one()

    async def assignments(self, report_id: str) -> List[AssignmentAudit]:
        statement = (
            select(AssignmentAudit)
            .where(AssignmentAudit.report_id == report_id)
            .order_by(AssignmentAudit.created_at.desc())
        )
        async with self._guard("load assignment history"):
            result = await self._session.exec(statement)
            return list(result.all())


__all__ = ["ReportStore"]
