import os
import sys
import tempfile
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Tuple

import pytest
from sqlmodel import Session, SQLModel, create_engine

# Ensure we can import the backend package located under fastapi-backend/
REPO_ROOT = Path(__file__).resolve().parents[1]
BACKEND_PATH = REPO_ROOT / "fastapi-backend"
if str(BACKEND_PATH) not in sys.path:
    sys.path.insert(0, str(BACKEND_PATH))

# Point the app at a throwaway SQLite file and local storage BEFORE importing
# any app module; settings are read once per process.
_TMP_DIR = Path(tempfile.mkdtemp(prefix="waste_reports_tests_"))
os.environ["JWT_SECRET"] = "test-secret-key-for-pytest-only-12345"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP_DIR / 'test.db'}"
os.environ["STORAGE_PROVIDER"] = "local"
os.environ["LOCAL_STORAGE_DIR"] = str(_TMP_DIR / "storage")
os.environ["APP_ENV"] = "test"
os.environ.pop("SENTRY_DSN", None)

import waste_reports.auth as auth  # noqa: E402
import waste_reports.database as database  # noqa: E402
from waste_reports.models import Principal, ReportStatus, Role, WasteReport, WasteType  # noqa: E402

STORAGE_DIR = _TMP_DIR / "storage"
DEFAULT_ADDRESS = "221B Baker Street, Marylebone, London, United Kingdom"


class FakeGeocoder:
    def __init__(self, address: str = DEFAULT_ADDRESS):
        self.address = address
        self.calls = []

    async def reverse(self, latitude: float, longitude: float) -> str:
        self.calls.append((latitude, longitude))
        return self.address

    async def aclose(self) -> None:
        pass


@pytest.fixture(scope="session")
def db_engine():
    sync_url = database.DATABASE_URL.replace("sqlite+aiosqlite", "sqlite")
    engine = create_engine(sync_url)
    yield engine
    engine.dispose()


@pytest.fixture
def clean_db(db_engine):
    """Fresh schema for every test that touches the database."""
    SQLModel.metadata.drop_all(db_engine)
    SQLModel.metadata.create_all(db_engine)
    return db_engine


@pytest.fixture
def make_principal(clean_db) -> Callable[..., Tuple[str, str]]:
    """Return a factory that provisions a principal directly in the DB and returns (id, token)."""

    def _create(role: Role = Role.user, principal_id: str = None, name: str = None):
        principal_id = principal_id or f"{Role(role).value}-{uuid.uuid4().hex[:8]}"
        with Session(clean_db) as session:
            session.add(
                Principal(
                    id=principal_id,
                    role=Role(role),
                    email=f"{principal_id}@example.test",
                    name=name or principal_id,
                )
            )
            session.commit()
        return principal_id, auth.create_access_token(subject=principal_id)

    return _create


@pytest.fixture
def insert_report(clean_db):
    """Insert a report row as-is, bypassing the API (for seeding any state)."""

    def _insert(reporter_id: str, **fields) -> str:
        data = {
            "title": "Overflowing bins",
            "waste_type": WasteType.household,
            "image_url": "https://img.example/waste.jpg",
            "latitude": 51.5,
            "longitude": -0.1,
            "status": ReportStatus.pending,
            "created_at": datetime.now(timezone.utc),
        }
        data.update(fields)
        report = WasteReport(reporter_id=reporter_id, **data)
        with Session(clean_db) as session:
            session.add(report)
            session.commit()
            return report.id

    return _insert


@pytest.fixture
def geocoder():
    return FakeGeocoder()


@pytest.fixture
def client(clean_db, geocoder):
    from fastapi.testclient import TestClient
    from waste_reports.dependencies import get_reverse_geocoder
    from waste_reports.main import app

    app.dependency_overrides[get_reverse_geocoder] = lambda: geocoder
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
