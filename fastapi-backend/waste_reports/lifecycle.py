"""Report lifecycle rules.

`apply_transition` is the single authority on whether a requested change to a
waste report is legal. It never mutates the report it is given: it returns
the complete set of column updates (timestamps included) so the store can
persist them in one statement, or raises before anything is written.
"""

from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from .access import mutable_fields
from .errors import Forbidden, PreconditionFailed
from .models import ReportStatus, Role, utcnow


ALLOWED_TRANSITIONS = {
    ReportStatus.pending: frozenset({ReportStatus.assigned, ReportStatus.rejected}),
    ReportStatus.assigned: frozenset({ReportStatus.in_progress, ReportStatus.rejected, ReportStatus.pending}),
    ReportStatus.in_progress: frozenset({ReportStatus.completed, ReportStatus.assigned}),
    ReportStatus.completed: frozenset(),
    ReportStatus.rejected: frozenset(),
}

# Target statuses each role may move a report into. Management also owns
# unassignment (assigned -> pending).
STATUS_RIGHTS = {
    Role.management: frozenset({
        ReportStatus.pending,
        ReportStatus.assigned,
        ReportStatus.in_progress,
        ReportStatus.completed,
        ReportStatus.rejected,
    }),
    Role.worker: frozenset({ReportStatus.in_progress, ReportStatus.completed}),
    Role.user: frozenset(),
}

WORKER_STATUSES = frozenset({ReportStatus.assigned, ReportStatus.in_progress, ReportStatus.completed})
FEEDBACK_FIELDS = frozenset({"rating", "feedback_text", "feedback_date"})


def _as_status(value: Any) -> ReportStatus:
    try:
        return ReportStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in ReportStatus)
        raise PreconditionFailed(f"Invalid status '{value}'. Allowed: {allowed}")


def can_transition(role: Role, old_status: ReportStatus, new_status: ReportStatus) -> None:
    """Raise unless `role` may move a report from `old_status` to `new_status`.

    An edge missing from the table is a `PreconditionFailed` whoever asks;
    an existing edge the role has no rights to is `Forbidden`.
    """
    old = _as_status(old_status)
    new = _as_status(new_status)
    if new not in ALLOWED_TRANSITIONS[old]:
        raise PreconditionFailed(f"Invalid status transition from {old.value} to {new.value}")
    if new not in STATUS_RIGHTS[Role(role)]:
        raise Forbidden(f"Role '{Role(role).value}' cannot set status to '{new.value}'")


def check_invariants(state: Mapping[str, Any]) -> None:
    """Validate the cross-field invariants of a (merged) report state."""
    status = _as_status(state.get("status"))
    if state.get("worker_id") is not None and status not in WORKER_STATUSES:
        raise PreconditionFailed(f"A report that is {status.value} cannot have a worker assigned")
    if status in WORKER_STATUSES and state.get("worker_id") is None:
        raise PreconditionFailed(f"Status '{status.value}' requires an assigned worker")
    if status == ReportStatus.completed and not state.get("cleaned_image_url"):
        raise PreconditionFailed("A photo of the cleaned area is required before completing")
    if state.get("feedback_date") is not None and status != ReportStatus.completed:
        raise PreconditionFailed("Feedback is only allowed on completed reports")
    if not state.get("image_url"):
        raise PreconditionFailed("A photo of the waste is required")


def _snapshot(report) -> Dict[str, Any]:
    return {
        "status": report.status,
        "worker_id": report.worker_id,
        "cleaned_image_url": report.cleaned_image_url,
        "feedback_date": report.feedback_date,
        "image_url": report.image_url,
    }


def _apply_feedback(report, changes: Mapping[str, Any], now: datetime) -> Dict[str, Any]:
    if _as_status(report.status) != ReportStatus.completed:
        raise PreconditionFailed("Feedback can only be given once the cleanup is completed")
    if report.feedback_date is not None:
        raise PreconditionFailed("Feedback has already been submitted for this report")

    rating = changes.get("rating")
    if rating is None:
        raise PreconditionFailed("A rating is required")
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        raise PreconditionFailed("Rating must be a whole number between 1 and 5")

    return {
        "rating": rating,
        "feedback_text": changes.get("feedback_text"),
        # Stamped here regardless of what the client sent.
        "feedback_date": now,
        "updated_at": now,
    }


def apply_transition(
    report,
    actor_role: Role,
    actor_id: str,
    desired_changes: Mapping[str, Any],
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """Validate `desired_changes` against `report` and return the column updates.

    Raises `Forbidden` when the actor lacks rights and `PreconditionFailed`
    when an ordering or required-field rule would be broken.
    """
    now = now or utcnow()
    role = Role(actor_role)
    changes = dict(desired_changes)
    if not changes:
        raise PreconditionFailed("No changes requested")

    denied = sorted(set(changes) - mutable_fields(role))
    if denied:
        raise Forbidden(f"Role '{role.value}' may not modify: {', '.join(denied)}")

    if role == Role.worker and report.worker_id != actor_id:
        raise Forbidden("This report is not assigned to you")
    if role == Role.user and report.reporter_id != actor_id:
        raise Forbidden("You can only give feedback on your own reports")

    current = _as_status(report.status)
    if current == ReportStatus.rejected:
        raise PreconditionFailed("Rejected reports can no longer be changed")
    if current == ReportStatus.completed and set(changes) - FEEDBACK_FIELDS:
        raise PreconditionFailed("Completed reports only accept citizen feedback")

    if role == Role.user:
        return _apply_feedback(report, changes, now)

    if "status" in changes and changes["status"] is None:
        raise PreconditionFailed("Status cannot be cleared")
    target = _as_status(changes.get("status", current))
    if "worker_id" in changes and changes["worker_id"] == "":
        changes["worker_id"] = None

    updates: Dict[str, Any] = {}
    if target != current:
        can_transition(role, current, target)
        updates["status"] = target

    if "worker_id" in changes and changes["worker_id"] != report.worker_id:
        new_worker = changes["worker_id"]
        if new_worker is not None and target != ReportStatus.assigned:
            raise PreconditionFailed("Assigning a worker requires status 'assigned'")
        updates["worker_id"] = new_worker
        if new_worker is not None:
            updates["assigned_date"] = now

    if target != current:
        if target in (ReportStatus.pending, ReportStatus.rejected):
            updates["worker_id"] = None
            updates["assigned_date"] = None
        elif target == ReportStatus.assigned:
            if current == ReportStatus.pending:
                updates["assigned_date"] = now
            else:
                # Reverting from in_progress: the work has not started any more.
                updates["started_at"] = None
        elif target == ReportStatus.in_progress:
            updates["started_at"] = now
        elif target == ReportStatus.completed:
            updates["completed_at"] = now

    if changes.get("cleaned_image_url") is not None and not (
        current == ReportStatus.in_progress or target == ReportStatus.completed
    ):
        raise PreconditionFailed("A cleaned-area photo can only be added once the cleanup has started")

    for field in ("management_notes", "worker_notes", "cleaned_image_url"):
        if field in changes:
            updates[field] = changes[field]

    if not updates:
        raise PreconditionFailed(f"Report is already {current.value}; nothing to change")

    merged = _snapshot(report)
    merged.update({k: v for k, v in updates.items() if k in merged})
    check_invariants(merged)

    updates["updated_at"] = now
    return updates


__all__ = [
    "ALLOWED_TRANSITIONS",
    "STATUS_RIGHTS",
    "can_transition",
    "check_invariants",
    "apply_transition",
]
