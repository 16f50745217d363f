"""Management dashboards: analytics summary and the worker directory."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlmodel.ext.asyncio.session import AsyncSession

from .. import auth
from ..analytics import AnalyticsSummary, Timeframe, WorkerWorkload, summarize, window_start, worker_workload
from ..database import get_session
from ..dependencies import get_report_store
from ..errors import NotFound
from ..identity import list_principals
from ..models import Principal, Role, WasteReport, utcnow
from ..store import ReportStore

router = APIRouter(prefix="/api/v1")


class WorkerSummary(BaseModel):
    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    workload: WorkerWorkload


@router.get("/analytics", response_model=AnalyticsSummary)
async def get_analytics(
    timeframe: Timeframe = Query(Timeframe.week),
    _: Principal = Depends(auth.require_role(Role.management)),
    store: ReportStore = Depends(get_report_store),
):
    now = utcnow()
    reports = await store.query(
        WasteReport.created_at >= window_start(timeframe, now),
        WasteReport.created_at <= now,
    )
    return summarize(reports, timeframe, now=now)


@router.get("/workers", response_model=List[WorkerSummary])
async def list_workers(
    _: Principal = Depends(auth.require_role(Role.management)),
    store: ReportStore = Depends(get_report_store),
    session: AsyncSession = Depends(get_session),
):
    workers = await list_principals(session, Role.worker)
    summaries = []
    for worker in workers:
        reports = await store.query(WasteReport.worker_id == worker.id)
        summaries.append(
            WorkerSummary(id=worker.id, name=worker.name, email=worker.email, workload=worker_workload(reports))
        )
    return summaries


@router.get("/workers/{worker_id}/reports", response_model=List[WasteReport])
async def list_worker_reports(
    worker_id: str,
    _: Principal = Depends(auth.require_role(Role.management)),
    store: ReportStore = Depends(get_report_store),
    session: AsyncSession = Depends(get_session),
):
    worker = await session.get(Principal, worker_id)
    if worker is None or Role(worker.role) != Role.worker:
        raise NotFound("Worker not found")
    return await store.query(WasteReport.worker_id == worker_id)
