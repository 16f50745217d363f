"""Provision a principal's role and print a bearer token for it.

Roles are never self-assigned through the API; operators use this script
(or the identity provider's own tooling writing the same table).

Usage:
    python fastapi-backend/scripts/create_principal.py --id <idp-user-id> --role worker \
        --email worker@example.com --name "Jane Worker"
"""

import argparse
import asyncio
from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parents[2]
sys.path.append(str(ROOT / "fastapi-backend"))

from waste_reports.auth import create_access_token  # noqa: E402
from waste_reports.database import async_session_factory, init_db  # noqa: E402
from waste_reports.identity import create_principal  # noqa: E402
from waste_reports.models import Role  # noqa: E402


async def _provision(args) -> None:
    await init_db()
    async with async_session_factory() as session:
        principal = await create_principal(
            session,
            principal_id=args.id,
            role=Role(args.role),
            email=args.email,
            name=args.name,
        )
    print(f"Provisioned principal id={principal.id} role={principal.role.value} email={principal.email}")
    if args.token:
        print(create_access_token(subject=principal.id))


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--id", required=True, help="principal id issued by the identity provider")
    parser.add_argument("--role", required=True, choices=[r.value for r in Role])
    parser.add_argument("--email")
    parser.add_argument("--name")
    parser.add_argument("--token", action="store_true", help="also print a bearer token for local testing")
    args = parser.parse_args()
    asyncio.run(_provision(args))


if __name__ == "__main__":
    main()
