"""Lifecycle rules exercised directly, without HTTP or a database."""

from datetime import datetime, timedelta, timezone
import itertools

import pytest

from waste_reports.errors import Forbidden, PreconditionFailed
from waste_reports.lifecycle import (
    ALLOWED_TRANSITIONS,
    apply_transition,
    can_transition,
    check_invariants,
)
from waste_reports.models import ReportStatus, Role, WasteReport

CITIZEN = "citizen-1"
OTHER_CITIZEN = "citizen-2"
MANAGER = "manager-1"
WORKER = "worker-1"
OTHER_WORKER = "worker-2"
NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def make_report(status=ReportStatus.pending, **fields):
    data = dict(
        id="r-1",
        reporter_id=CITIZEN,
        title="Dumped sofa",
        image_url="https://img.example/sofa.jpg",
        latitude=6.45,
        longitude=3.39,
        status=status,
    )
    if status in (ReportStatus.assigned, ReportStatus.in_progress, ReportStatus.completed):
        data["worker_id"] = WORKER
        data["assigned_date"] = NOW - timedelta(days=2)
    if status in (ReportStatus.in_progress, ReportStatus.completed):
        data["started_at"] = NOW - timedelta(days=1)
    if status == ReportStatus.completed:
        data["cleaned_image_url"] = "https://img.example/clean.jpg"
        data["completed_at"] = NOW - timedelta(hours=1)
    data.update(fields)
    return WasteReport(**data)


def apply(report, updates):
    for field, value in updates.items():
        setattr(report, field, value)
    return report


def test_full_lifecycle_scenario():
    report = make_report()

    updates = apply_transition(report, Role.management, MANAGER, {"status": "assigned", "worker_id": WORKER}, now=NOW)
    assert updates["status"] == ReportStatus.assigned
    assert updates["worker_id"] == WORKER
    assert updates["assigned_date"] == NOW
    apply(report, updates)

    later = NOW + timedelta(hours=1)
    updates = apply_transition(report, Role.worker, WORKER, {"status": "in_progress"}, now=later)
    assert updates["status"] == ReportStatus.in_progress
    assert updates["started_at"] == later
    apply(report, updates)

    done = NOW + timedelta(hours=3)
    updates = apply_transition(
        report,
        Role.worker,
        WORKER,
        {"status": "completed", "cleaned_image_url": "https://img.example/after.jpg", "worker_notes": "Cleared"},
        now=done,
    )
    assert updates["completed_at"] == done
    assert updates["cleaned_image_url"] == "https://img.example/after.jpg"
    apply(report, updates)

    feedback_at = NOW + timedelta(days=1)
    updates = apply_transition(report, Role.user, CITIZEN, {"rating": 5, "feedback_text": "Spotless"}, now=feedback_at)
    assert updates["rating"] == 5
    assert updates["feedback_date"] == feedback_at
    apply(report, updates)

    with pytest.raises(PreconditionFailed):
        apply_transition(report, Role.user, CITIZEN, {"rating": 4})


def test_does_not_mutate_the_report():
    report = make_report()
    apply_transition(report, Role.management, MANAGER, {"status": "assigned", "worker_id": WORKER}, now=NOW)
    assert report.status == ReportStatus.pending
    assert report.worker_id is None
    assert report.assigned_date is None


def test_assign_without_worker_fails():
    with pytest.raises(PreconditionFailed):
        apply_transition(make_report(), Role.management, MANAGER, {"status": "assigned"})


def test_worker_without_assigned_status_fails():
    with pytest.raises(PreconditionFailed):
        apply_transition(make_report(), Role.management, MANAGER, {"worker_id": WORKER})


def test_complete_without_cleaned_photo_fails():
    report = make_report(ReportStatus.in_progress)
    with pytest.raises(PreconditionFailed):
        apply_transition(report, Role.worker, WORKER, {"status": "completed"})


@pytest.mark.parametrize(
    "current,target",
    [
        (old, new)
        for old, new in itertools.product(ReportStatus, ReportStatus)
        if old != new and new not in ALLOWED_TRANSITIONS[old]
    ],
)
def test_edges_outside_the_table_are_rejected(current, target):
    report = make_report(current)
    changes = {"status": target.value}
    if target == ReportStatus.assigned:
        changes["worker_id"] = WORKER
    if target == ReportStatus.completed:
        changes["cleaned_image_url"] = "https://img.example/clean.jpg"
    with pytest.raises(PreconditionFailed):
        apply_transition(report, Role.management, MANAGER, changes)


def test_can_transition_distinguishes_table_from_rights():
    with pytest.raises(PreconditionFailed):
        can_transition(Role.management, ReportStatus.pending, ReportStatus.completed)
    with pytest.raises(Forbidden):
        can_transition(Role.worker, ReportStatus.assigned, ReportStatus.rejected)
    can_transition(Role.worker, ReportStatus.assigned, ReportStatus.in_progress)
    can_transition(Role.management, ReportStatus.assigned, ReportStatus.pending)


def test_worker_cannot_reject_or_revert():
    with pytest.raises(Forbidden):
        apply_transition(make_report(ReportStatus.assigned), Role.worker, WORKER, {"status": "rejected"})
    with pytest.raises(Forbidden):
        apply_transition(make_report(ReportStatus.in_progress), Role.worker, WORKER, {"status": "assigned"})


@pytest.mark.parametrize("status", [ReportStatus.assigned, ReportStatus.in_progress])
def test_other_worker_is_forbidden(status):
    with pytest.raises(Forbidden):
        apply_transition(make_report(status), Role.worker, OTHER_WORKER, {"worker_notes": "mine now"})


def test_worker_cannot_reassign():
    with pytest.raises(Forbidden):
        apply_transition(make_report(ReportStatus.assigned), Role.worker, WORKER, {"worker_id": OTHER_WORKER})


def test_worker_cannot_touch_unassigned_report():
    with pytest.raises(Forbidden):
        apply_transition(make_report(), Role.worker, WORKER, {"status": "in_progress"})


def test_management_cannot_write_worker_or_feedback_fields():
    with pytest.raises(Forbidden):
        apply_transition(make_report(ReportStatus.assigned), Role.management, MANAGER, {"worker_notes": "x"})
    with pytest.raises(Forbidden):
        apply_transition(make_report(ReportStatus.completed), Role.management, MANAGER, {"rating": 3})


def test_user_cannot_change_status():
    with pytest.raises(Forbidden):
        apply_transition(make_report(), Role.user, CITIZEN, {"status": "rejected"})


def test_unassign_clears_worker():
    updates = apply_transition(make_report(ReportStatus.assigned), Role.management, MANAGER, {"status": "pending"}, now=NOW)
    assert updates["status"] == ReportStatus.pending
    assert updates["worker_id"] is None
    assert updates["assigned_date"] is None


def test_reject_assigned_report_clears_worker():
    updates = apply_transition(make_report(ReportStatus.assigned), Role.management, MANAGER, {"status": "rejected"})
    assert updates["status"] == ReportStatus.rejected
    assert updates["worker_id"] is None


def test_revert_in_progress_clears_started_at():
    updates = apply_transition(
        make_report(ReportStatus.in_progress), Role.management, MANAGER, {"status": "assigned"}, now=NOW
    )
    assert updates["status"] == ReportStatus.assigned
    assert updates["started_at"] is None
    assert "worker_id" not in updates


def test_reassign_to_another_worker():
    report = make_report(ReportStatus.assigned)
    updates = apply_transition(
        report, Role.management, MANAGER, {"status": "assigned", "worker_id": OTHER_WORKER}, now=NOW
    )
    assert updates["worker_id"] == OTHER_WORKER
    assert updates["assigned_date"] == NOW
    assert "status" not in updates


def test_reassign_while_in_progress_requires_reverting():
    report = make_report(ReportStatus.in_progress)
    with pytest.raises(PreconditionFailed):
        apply_transition(report, Role.management, MANAGER, {"worker_id": OTHER_WORKER})

    updates = apply_transition(
        report, Role.management, MANAGER, {"status": "assigned", "worker_id": OTHER_WORKER}, now=NOW
    )
    assert updates["worker_id"] == OTHER_WORKER
    assert updates["started_at"] is None


@pytest.mark.parametrize("status", [ReportStatus.pending, ReportStatus.assigned])
def test_cleaned_photo_before_work_starts_fails(status):
    with pytest.raises(PreconditionFailed):
        apply_transition(
            make_report(status), Role.management, MANAGER, {"cleaned_image_url": "https://img.example/early.jpg"}
        )


def test_cleaned_photo_while_in_progress():
    updates = apply_transition(
        make_report(ReportStatus.in_progress),
        Role.worker,
        WORKER,
        {"cleaned_image_url": "https://img.example/after.jpg"},
        now=NOW,
    )
    assert updates == {"cleaned_image_url": "https://img.example/after.jpg", "updated_at": NOW}


@pytest.mark.parametrize("status", [ReportStatus.completed, ReportStatus.rejected])
def test_terminal_reports_reject_staff_changes(status):
    report = make_report(status)
    with pytest.raises(PreconditionFailed):
        apply_transition(report, Role.management, MANAGER, {"management_notes": "late note"})


def test_management_notes_on_pending_report():
    updates = apply_transition(make_report(), Role.management, MANAGER, {"management_notes": "Check site"}, now=NOW)
    assert updates == {"management_notes": "Check site", "updated_at": NOW}


def test_same_status_is_a_noop_error():
    with pytest.raises(PreconditionFailed):
        apply_transition(make_report(ReportStatus.assigned), Role.worker, WORKER, {"status": "assigned"})


def test_unknown_status_is_rejected():
    with pytest.raises(PreconditionFailed):
        apply_transition(make_report(), Role.management, MANAGER, {"status": "archived"})


def test_empty_change_set_is_rejected():
    with pytest.raises(PreconditionFailed):
        apply_transition(make_report(), Role.management, MANAGER, {})


def test_feedback_before_completion_fails():
    with pytest.raises(PreconditionFailed):
        apply_transition(make_report(ReportStatus.in_progress), Role.user, CITIZEN, {"rating": 4})


def test_feedback_on_someone_elses_report_is_forbidden():
    with pytest.raises(Forbidden):
        apply_transition(make_report(ReportStatus.completed), Role.user, OTHER_CITIZEN, {"rating": 4})


@pytest.mark.parametrize("rating", [0, 6, True, 3.5, None])
def test_feedback_rating_must_be_one_to_five(rating):
    with pytest.raises(PreconditionFailed):
        apply_transition(make_report(ReportStatus.completed), Role.user, CITIZEN, {"rating": rating})


def test_feedback_date_is_stamped_by_the_server():
    client_date = NOW - timedelta(days=30)
    updates = apply_transition(
        make_report(ReportStatus.completed),
        Role.user,
        CITIZEN,
        {"rating": 4, "feedback_date": client_date},
        now=NOW,
    )
    assert updates["feedback_date"] == NOW


def test_check_invariants():
    check_invariants({"status": "pending", "image_url": "x"})
    check_invariants({"status": "completed", "worker_id": WORKER, "cleaned_image_url": "y", "image_url": "x"})
    with pytest.raises(PreconditionFailed):
        check_invariants({"status": "pending", "worker_id": WORKER, "image_url": "x"})
    with pytest.raises(PreconditionFailed):
        check_invariants({"status": "in_progress", "image_url": "x"})
    with pytest.raises(PreconditionFailed):
        check_invariants({"status": "in_progress", "worker_id": WORKER, "feedback_date": NOW, "image_url": "x"})
    with pytest.raises(PreconditionFailed):
        check_invariants({"status": "pending", "image_url": None})


def test_every_reachable_state_satisfies_invariants():
    """Walk every path through the table with management driving and check each state."""
    frontier = [make_report()]
    seen = set()
    while frontier:
        report = frontier.pop()
        current = ReportStatus(report.status)
        if current in seen:
            continue
        seen.add(current)
        for target in ALLOWED_TRANSITIONS[current]:
            changes = {"status": target.value}
            if target == ReportStatus.assigned:
                changes["worker_id"] = WORKER
            if target == ReportStatus.completed:
                changes["cleaned_image_url"] = "https://img.example/clean.jpg"
            nxt = make_report(current, **{k: getattr(report, k) for k in ("worker_id", "cleaned_image_url")})
            apply(nxt, apply_transition(report, Role.management, MANAGER, changes))
            check_invariants(
                {
                    "status": nxt.status,
                    "worker_id": nxt.worker_id,
                    "cleaned_image_url": nxt.cleaned_image_url,
                    "feedback_date": nxt.feedback_date,
                    "image_url": nxt.image_url,
                }
            )
            frontier.append(nxt)
    assert seen == set(ReportStatus)
