"""Role-scoped views over waste reports.

Citizens see the reports they filed, workers see the reports bound to them,
management sees everything. The same rule is expressed twice: once over an
in-memory collection and once as a SQL filter for store queries.
"""

from typing import FrozenSet, Iterable, List

from .errors import Forbidden
from .models import Role, WasteReport


MUTABLE_FIELDS = {
    Role.management: frozenset({"status", "worker_id", "management_notes", "cleaned_image_url"}),
    Role.worker: frozenset({"status", "worker_notes", "cleaned_image_url"}),
    Role.user: frozenset({"rating", "feedback_text", "feedback_date"}),
}


def mutable_fields(role: Role) -> FrozenSet[str]:
    """Return the report fields `role` may write."""
    return MUTABLE_FIELDS.get(Role(role), frozenset())


def can_see(role: Role, principal_id: str, report) -> bool:
    role = Role(role)
    if role == Role.management:
        return True
    if role == Role.worker:
        return report.worker_id is not None and report.worker_id == principal_id
    return report.reporter_id == principal_id


def visible_reports(role: Role, principal_id: str, reports: Iterable) -> List:
    return [r for r in reports if can_see(role, principal_id, r)]


def ensure_visible(role: Role, principal_id: str, report) -> None:
    if not can_see(role, principal_id, report):
        raise Forbidden("You do not have access to this report")


def scope_query(role: Role, principal_id: str, statement):
    """Narrow a `select(WasteReport)` (or count) statement to the principal's view."""
    role = Role(role)
    if role == Role.management:
        return statement
    if role == Role.worker:
        return statement.where(WasteReport.worker_id == principal_id)
    return statement.where(WasteReport.reporter_id == principal_id)


__all__ = ["mutable_fields", "can_see", "visible_reports", "ensure_visible", "scope_query"]
