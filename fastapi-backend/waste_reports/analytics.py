"""Summary statistics over a time window of waste reports.

Everything here is a pure function of the reports passed in, so the
management dashboard can recompute on every timeframe switch.
"""

from collections import Counter
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Iterable, List, Optional, Sequence

from pydantic import BaseModel

from .models import ReportStatus, utcnow


TOP_LOCATIONS_LIMIT = 5


class Timeframe(str, Enum):
    week = "week"
    month = "month"
    year = "year"


class StatusCount(BaseModel):
    status: str
    count: int
    percentage: int


class WasteTypeCount(BaseModel):
    type: str
    count: int
    percentage: int


class LocationCount(BaseModel):
    location: str
    count: int


class AnalyticsSummary(BaseModel):
    timeframe: Timeframe
    start: datetime
    end: datetime
    total: int
    statuses: List[StatusCount]
    waste_types: List[WasteTypeCount]
    top_locations: List[LocationCount]
    average_rating: float


class WorkerWorkload(BaseModel):
    assigned: int
    in_progress: int
    completed: int


def _as_utc(value: datetime) -> datetime:
    # SQLite hands timestamps back without tzinfo; they were written as UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _status_value(report) -> str:
    status = report.status
    return status.value if isinstance(status, Enum) else str(status)


def window_start(timeframe: Timeframe, now: datetime) -> datetime:
    now = _as_utc(now)
    timeframe = Timeframe(timeframe)
    if timeframe == Timeframe.week:
        return now - timedelta(days=7)
    if timeframe == Timeframe.month:
        return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    return now.replace(month=1, day=1, hour=0, minute=0, second=0, microsecond=0)


def in_window(reports: Iterable, start: datetime, end: datetime) -> List:
    start, end = _as_utc(start), _as_utc(end)
    return [
        r for r in reports
        if r.created_at is not None and start <= _as_utc(r.created_at) <= end
    ]


def _half_up(value: Decimal, places: str) -> Decimal:
    # Halves round away from zero, not to the nearest even digit.
    return value.quantize(Decimal(places), rounding=ROUND_HALF_UP)


def percentage(count: int, total: int) -> int:
    if total == 0:
        return 0
    return int(_half_up(Decimal(count * 100) / Decimal(total), "1"))


def status_breakdown(reports: Sequence) -> List[StatusCount]:
    counts = Counter(_status_value(r) for r in reports)
    total = len(reports)
    return [
        StatusCount(status=s.value, count=counts.get(s.value, 0), percentage=percentage(counts.get(s.value, 0), total))
        for s in ReportStatus
    ]


def waste_type_distribution(reports: Sequence) -> List[WasteTypeCount]:
    counts = Counter()
    for r in reports:
        waste_type = r.waste_type
        if isinstance(waste_type, Enum):
            waste_type = waste_type.value
        counts[waste_type or "unknown"] += 1
    total = len(reports)
    rows = [WasteTypeCount(type=t, count=c, percentage=percentage(c, total)) for t, c in counts.items()]
    return sorted(rows, key=lambda row: row.count, reverse=True)


def location_label(address: Optional[str]) -> Optional[str]:
    """Area name taken from a display address.

    Geocoded addresses end in "..., <area>, <country>", so the second-to-last
    comma-separated segment is used; an address without commas is its own
    label.
    """
    if not address:
        return None
    parts = address.split(",")
    if len(parts) > 1:
        return parts[-2].strip()
    return address


def top_locations(reports: Sequence, limit: int = TOP_LOCATIONS_LIMIT) -> List[LocationCount]:
    counts = Counter()
    for r in reports:
        label = location_label(r.address)
        if label:
            counts[label] += 1
    rows = [LocationCount(location=loc, count=c) for loc, c in counts.items()]
    return sorted(rows, key=lambda row: row.count, reverse=True)[:limit]


def average_rating(reports: Sequence) -> float:
    ratings = [
        r.rating for r in reports
        if _status_value(r) == ReportStatus.completed.value and r.rating
    ]
    if not ratings:
        return 0.0
    return float(_half_up(Decimal(sum(ratings)) / Decimal(len(ratings)), "0.1"))


def summarize(reports: Iterable, timeframe: Timeframe, now: Optional[datetime] = None) -> AnalyticsSummary:
    end = _as_utc(now or utcnow())
    start = window_start(timeframe, end)
    window = in_window(reports, start, end)
    return AnalyticsSummary(
        timeframe=Timeframe(timeframe),
        start=start,
        end=end,
        total=len(window),
        statuses=status_breakdown(window),
        waste_types=waste_type_distribution(window),
        top_locations=top_locations(window),
        average_rating=average_rating(window),
    )


def worker_workload(reports: Sequence) -> WorkerWorkload:
    statuses = Counter(_status_value(r) for r in reports)
    return WorkerWorkload(
        assigned=len(reports),
        in_progress=statuses.get(ReportStatus.in_progress.value, 0),
        completed=statuses.get(ReportStatus.completed.value, 0),
    )


__all__ = [
    "Timeframe",
    "AnalyticsSummary",
    "WorkerWorkload",
    "window_start",
    "in_window",
    "status_breakdown",
    "waste_type_distribution",
    "location_label",
    "top_locations",
    "average_rating",
    "summarize",
    "worker_workload",
]
