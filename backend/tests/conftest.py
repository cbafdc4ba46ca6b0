"""Pytest configuration and fixtures for Firmbook tests.

The document store is an in-memory ``MemoryDocumentStore`` seeded with a
small practice (two firms, clients in two states, a few engagements);
the activity log goes to an in-memory SQLite database.
"""

import os

os.environ.setdefault("CACHE_ENABLED", "false")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("DOCUMENT_STORE", "memory")

from typing import AsyncGenerator  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from firmbook.auth.jwt import create_access_token  # noqa: E402
from firmbook.auth.permissions import resolve_permissions  # noqa: E402
from firmbook.database import Base, get_db  # noqa: E402
from firmbook.documents import get_document_store  # noqa: E402
from firmbook.documents.memory import MemoryDocumentStore  # noqa: E402
from firmbook.main import app  # noqa: E402
import firmbook.models  # noqa: E402,F401


# ── Seed data ────────────────────────────────────────────────────

def seed_documents() -> dict[str, dict[str, dict]]:
    return {
        "firms": {
            "firm_mh": {
                "name": "Mehta & Iyer LLP",
                "state": "Maharashtra",
                "gstn": "27AAFFM1234C1Z5",
                "pan": "AAFFM1234C",
            },
            "firm_unreg": {
                "name": "Mehta Associates",
                "state": "Maharashtra",
                "gstn": "",
            },
        },
        "taxRates": {
            "gst18": {"name": "GST 18%", "rate": 18, "isDefault": True},
            "gst0": {"name": "Exempt", "rate": 0},
        },
        "hsnSacCodes": {
            "sac_998222": {"code": "998222", "description": "Accounting and auditing", "isDefault": True},
        },
        "engagementTypes": {
            "et_audit": {"name": "Statutory Audit"},
            "et_itr": {"name": "ITR Filing"},
        },
        "salesItems": {
            "si_audit": {
                "name": "Statutory Audit Fee",
                "description": "Statutory audit for the financial year",
                "standardPrice": 10000,
                "defaultTaxRateId": "gst18",
                "defaultSacId": "sac_998222",
                "associatedEngagementTypeId": "et_audit",
            },
            "si_itr": {
                "name": "Return Filing",
                "standardPrice": 2500,
                "defaultTaxRateId": "gst18",
            },
        },
        "employees": {
            "emp_partner": {"name": "Rohan Mehta", "email": "rohan@example.in", "role": ["Partner"]},
            "emp_accounts": {"name": "Sita Iyer", "email": "sita@example.in", "role": ["Accounts"]},
            "emp_staff": {"name": "Amir Khan", "email": "amir@example.in", "role": ["Staff"]},
        },
        "clients": {
            "cl_bharat": {
                "name": "Bharat Traders",
                "partnerId": "emp_partner",
                "firmId": "firm_mh",
                "state": "Maharashtra",
                "gstin": "27ABCDE1234F1Z5",
            },
            "cl_kaveri": {
                "name": "Kaveri Foods",
                "partnerId": "emp_partner",
                "firmId": "firm_mh",
                "state": "Karnataka",
                "gstin": "29ABCDE9876K1Z2",
            },
        },
        "engagements": {
            "eng_audit": {
                "clientId": "cl_bharat",
                "type": "et_audit",
                "remarks": "FY 2025-26 statutory audit",
                "status": "Completed",
                "assignedTo": ["emp_staff"],
                "reportedTo": "emp_partner",
                "dueDate": "2026-09-30T00:00:00Z",
            },
            "eng_itr": {
                "clientId": "cl_kaveri",
                "type": "et_itr",
                "remarks": "ITR for AY 2026-27",
                "status": "Completed",
                "assignedTo": ["emp_staff", "emp_accounts"],
                "reportedTo": "emp_partner",
            },
            "eng_wip": {
                "clientId": "cl_bharat",
                "type": "et_itr",
                "remarks": "Advance tax working",
                "status": "In Process",
                "assignedTo": ["emp_staff"],
            },
            "eng_orphan": {
                "clientId": "cl_gone",
                "type": "et_itr",
                "remarks": "Client record deleted",
                "status": "Completed",
            },
        },
    }


# ── Stores ───────────────────────────────────────────────────────

@pytest.fixture
def store() -> MemoryDocumentStore:
    """Fresh seeded document store per test."""
    return MemoryDocumentStore(seed=seed_documents())


@pytest_asyncio.fixture
async def session_factory():
    """In-memory SQLite standing in for the activity-log database."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(store, session_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client with the store and DB dependencies overridden."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_document_store] = lambda: store
    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ── Auth ─────────────────────────────────────────────────────────

def token_for(employee_id: str, roles: list[str]) -> str:
    return create_access_token(employee_id, roles, resolve_permissions(roles))


def bearer(employee_id: str, roles: list[str]) -> dict:
    return {"Authorization": f"Bearer {token_for(employee_id, roles)}"}


@pytest.fixture
def partner_headers() -> dict:
    return bearer("emp_partner", ["Partner"])


@pytest.fixture
def accounts_headers() -> dict:
    return bearer("emp_accounts", ["Accounts"])


@pytest.fixture
def staff_headers() -> dict:
    return bearer("emp_staff", ["Staff"])


# ── Test Markers ─────────────────────────────────────────────────

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "api: HTTP tests through the ASGI app")
    config.addinivalue_line("markers", "cache: Redis caching behaviour")
