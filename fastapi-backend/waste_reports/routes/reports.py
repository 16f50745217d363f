"""Waste report routes: submission, role-scoped reads and lifecycle updates."""

from __future__ import annotations

from typing import Any, Dict, List, Optional
import logging

from fastapi import APIRouter, Depends, Query
from fastapi import status as http_status
from pydantic import BaseModel, Field, constr
from sqlmodel.ext.asyncio.session import AsyncSession

from .. import auth
from ..access import ensure_visible
from ..database import get_session
from ..dependencies import get_report_store, get_reverse_geocoder
from ..errors import Forbidden, NotFound, PreconditionFailed, StaleReport
from ..geocoding import ReverseGeocoder
from ..lifecycle import apply_transition, check_invariants
from ..models import AssignmentAudit, Principal, ReportStatus, Role, WasteReport, WasteType
from ..observability import (
    report_mutations_rejected_total,
    report_transitions_total,
    reports_submitted_total,
)
from ..store import ReportStore

logger = logging.getLogger("app.reports")

router = APIRouter(prefix="/api/v1")


class ReportCreate(BaseModel):
    title: constr(strip_whitespace=True, min_length=1, max_length=200)
    description: Optional[str] = None
    waste_type: WasteType = WasteType.household
    # Optional here so a missing photo is reported as a lifecycle error.
    image_url: Optional[str] = None
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class ReportUpdate(BaseModel):
    # Plain strings: unknown statuses are rejected by the lifecycle rules.
    status: Optional[str] = None
    worker_id: Optional[str] = None
    management_notes: Optional[str] = None
    worker_notes: Optional[str] = None
    cleaned_image_url: Optional[str] = None
    rating: Optional[int] = None
    feedback_text: Optional[str] = None
    expected_version: Optional[int] = None


class AssignmentSchema(BaseModel):
    worker_id: constr(strip_whitespace=True, min_length=1)
    management_notes: Optional[str] = None
    expected_version: Optional[int] = None


class StatusUpdateSchema(BaseModel):
    status: str
    cleaned_image_url: Optional[str] = None
    worker_notes: Optional[str] = None
    management_notes: Optional[str] = None
    expected_version: Optional[int] = None


class FeedbackSchema(BaseModel):
    rating: int
    feedback_text: Optional[str] = None


class PaginatedReports(BaseModel):
    items: List[WasteReport]
    total: int
    page: int
    page_size: int
    total_pages: int


async def _ensure_worker(session: AsyncSession, worker_id: str) -> None:
    worker = await session.get(Principal, worker_id)
    if worker is None or Role(worker.role) != Role.worker:
        raise NotFound("Worker not found")


async def mutate_report(
    store: ReportStore,
    session: AsyncSession,
    report_id: str,
    principal: Principal,
    changes: Dict[str, Any],
    expected_version: Optional[int] = None,
) -> WasteReport:
    """Run `changes` through the lifecycle rules and persist them atomically."""
    report = await store.get(report_id)
    role = Role(principal.role)
    if expected_version is not None and expected_version != report.version:
        raise StaleReport("Report was modified by someone else; reload and try again")

    try:
        updates = apply_transition(report, role, principal.id, changes)
    except (Forbidden, PreconditionFailed) as exc:
        report_mutations_rejected_total.labels(reason=type(exc).__name__, role=role.value).inc()
        raise

    audit = None
    if updates.get("worker_id"):
        await _ensure_worker(session, updates["worker_id"])
        audit = AssignmentAudit(report_id=report.id, assigned_by=principal.id, assigned_to=updates["worker_id"])

    old_status = ReportStatus(report.status)
    # Condition the write on the version the rules were checked against.
    updated = await store.update(report.id, updates, expected_version=report.version, audit=audit)

    if "status" in updates:
        new_status = ReportStatus(updates["status"])
        report_transitions_total.labels(from_status=old_status.value, to_status=new_status.value, role=role.value).inc()
        logger.info("Report %s moved %s -> %s by %s %s", report.id, old_status.value, new_status.value, role.value, principal.id)
    else:
        logger.info("Report %s updated by %s %s: %s", report.id, role.value, principal.id, ", ".join(sorted(updates)))
    return updated


@router.post("/reports", response_model=WasteReport, status_code=http_status.HTTP_201_CREATED)
async def submit_report(
    payload: ReportCreate,
    principal: Principal = Depends(auth.require_role(Role.user)),
    store: ReportStore = Depends(get_report_store),
    geocoder: ReverseGeocoder = Depends(get_reverse_geocoder),
):
    """Citizen files a new report; it starts out pending with no worker."""
    data = payload.model_dump()
    check_invariants({"status": ReportStatus.pending, "image_url": data.get("image_url")})

    address = await geocoder.reverse(payload.latitude, payload.longitude)
    report = WasteReport(
        reporter_id=principal.id,
        title=data["title"],
        description=data.get("description"),
        waste_type=WasteType(data["waste_type"]),
        image_url=data["image_url"],
        latitude=data["latitude"],
        longitude=data["longitude"],
        address=address,
        status=ReportStatus.pending,
    )
    report = await store.insert(report)
    reports_submitted_total.labels(waste_type=WasteType(report.waste_type).value).inc()
    return report


@router.get("/reports", response_model=PaginatedReports)
async def list_reports(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status: Optional[ReportStatus] = Query(None),
    waste_type: Optional[WasteType] = Query(None),
    principal: Principal = Depends(auth.get_current_principal),
    store: ReportStore = Depends(get_report_store),
):
    """Reports the caller may see, newest first.

    - management: every report
    - worker: reports assigned to them
    - user: reports they submitted
    """
    criteria = []
    if status is not None:
        criteria.append(WasteReport.status == status)
    if waste_type is not None:
        criteria.append(WasteReport.waste_type == waste_type)

    total = await store.count(*criteria, viewer=principal)
    items = await store.query(
        *criteria,
        viewer=principal,
        limit=page_size,
        offset=(page - 1) * page_size,
    )
    return PaginatedReports(
        items=items,
        total=total,
        page=page,
        page_size=page_size,
        total_pages=(total + page_size - 1) // page_size,
    )


@router.get("/reports/{report_id}", response_model=WasteReport)
async def get_report(
    report_id: str,
    principal: Principal = Depends(auth.get_current_principal),
    store: ReportStore = Depends(get_report_store),
):
    report = await store.get(report_id)
    ensure_visible(principal.role, principal.id, report)
    return report


@router.patch("/reports/{report_id}", response_model=WasteReport)
async def update_report(
    report_id: str,
    body: ReportUpdate,
    principal: Principal = Depends(auth.get_current_principal),
    store: ReportStore = Depends(get_report_store),
    session: AsyncSession = Depends(get_session),
):
    """Apply an arbitrary change set; the lifecycle rules decide what is legal."""
    changes = body.model_dump(exclude_unset=True)
    expected_version = changes.pop("expected_version", None)
    return await mutate_report(store, session, report_id, principal, changes, expected_version)


@router.patch("/reports/{report_id}/assign", response_model=WasteReport)
async def assign_report(
    report_id: str,
    body: AssignmentSchema,
    principal: Principal = Depends(auth.require_role(Role.management)),
    store: ReportStore = Depends(get_report_store),
    session: AsyncSession = Depends(get_session),
):
    """Bind a worker to a report (or hand it to a different worker)."""
    await _ensure_worker(session, body.worker_id)
    changes: Dict[str, Any] = {"worker_id": body.worker_id, "status": ReportStatus.assigned.value}
    if body.management_notes is not None:
        changes["management_notes"] = body.management_notes
    return await mutate_report(store, session, report_id, principal, changes, body.expected_version)


@router.patch("/reports/{report_id}/status", response_model=WasteReport)
async def update_report_status(
    report_id: str,
    body: StatusUpdateSchema,
    principal: Principal = Depends(auth.require_role(Role.management, Role.worker)),
    store: ReportStore = Depends(get_report_store),
    session: AsyncSession = Depends(get_session),
):
    changes = body.model_dump(exclude_unset=True)
    expected_version = changes.pop("expected_version", None)
    return await mutate_report(store, session, report_id, principal, changes, expected_version)


@router.post("/reports/{report_id}/feedback", response_model=WasteReport)
async def submit_feedback(
    report_id: str,
    body: FeedbackSchema,
    principal: Principal = Depends(auth.require_role(Role.user)),
    store: ReportStore = Depends(get_report_store),
    session: AsyncSession = Depends(get_session),
):
    """Citizen rates the cleanup of their own completed report, once."""
    changes = body.model_dump(exclude_unset=True)
    return await mutate_report(store, session, report_id, principal, changes)


@router.get("/reports/{report_id}/assignments", response_model=List[AssignmentAudit])
async def list_assignments(
    report_id: str,
    _: Principal = Depends(auth.require_role(Role.management)),
    store: ReportStore = Depends(get_report_store),
):
    await store.get(report_id)
    return await store.assignments(report_id)
