"""Principal and role lookup.

Roles are provisioned outside the API (see scripts/create_principal.py) and
are only ever read here.
"""

from typing import List, Optional

from sqlmodel import select

from .errors import RoleNotFound
from .models import Principal, Role


async def resolve_principal(session, principal_id: str) -> Principal:
    """Fetch the single role record for `principal_id` or raise `RoleNotFound`."""
    principal = await session.get(Principal, principal_id)
    if principal is None:
        raise RoleNotFound(f"No role is registered for principal {principal_id}")
    return principal


async def list_principals(session, role: Optional[Role] = None) -> List[Principal]:
    statement = select(Principal)
    if role is not None:
        statement = statement.where(Principal.role == role)
    statement = statement.order_by(Principal.name)
    result = await session.exec(statement)
    return list(result.all())


async def create_principal(
    session,
    principal_id: str,
    role: Role,
    email: Optional[str] = None,
    name: Optional[str] = None,
) -> Principal:
    """Provisioning helper: insert or update the role record for a principal."""
    existing = await session.get(Principal, principal_id)
    if existing:
        existing.role = Role(role)
        if email:
            existing.email = email
        if name:
            existing.name = name
        session.add(existing)
        await session.commit()
        await session.refresh(existing)
        return existing

    principal = Principal(id=principal_id, role=Role(role), email=email, name=name)
    session.add(principal)
    await session.commit()
    await session.refresh(principal)
    return principal


__all__ = ["resolve_principal", "list_principals", "create_principal"]
