"""
Shared fixtures: violation builders, a fake API for the engine,
and the reference authority running on in-memory SQLite.
"""
from unittest.mock import AsyncMock

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from lifecycle_gate.client.api_client import CommitResult, FieldUpdateResult, LifecycleApiClient
from lifecycle_gate.core.prerequisites import (
    MISSING_FIELD,
    STRUCTURAL,
    FieldViolation,
    PrerequisiteCheck,
    PrerequisiteContext,
    StructuralViolation,
)
from lifecycle_gate.db.database import get_session, init_db
from lifecycle_gate.main import app


CUSTOMER_ID = "6f1c2a9e-1111-4c3b-9d3e-000000000001"


def field_violation(slug, name=None, group=None, entity_id=CUSTOMER_ID):
    name = name or slug.replace("_", " ").title()
    return FieldViolation(
        code=MISSING_FIELD,
        message=f"{name} is required for Customer Activation",
        entity_type="CUSTOMER",
        entity_id=entity_id,
        field_slug=slug,
        group_name=group,
        resolution=f"Fill the {name} field on the customer profile",
    )


def structural_violation(message="Customer must have a portal contact", entity_id=CUSTOMER_ID):
    return StructuralViolation(
        code=STRUCTURAL,
        message=message,
        entity_type="CUSTOMER",
        entity_id=entity_id,
        resolution="Add a portal contact on the customer detail page",
    )


def failing_check(*violations, context=PrerequisiteContext.LIFECYCLE_ACTIVATION):
    return PrerequisiteCheck.from_violations(context, violations)


def passing_check(context=PrerequisiteContext.LIFECYCLE_ACTIVATION):
    return PrerequisiteCheck.ok(context)


@pytest.fixture
def fake_api():
    """Stands in for LifecycleApiClient. Defaults: everything passes."""
    api = AsyncMock(spec=LifecycleApiClient)
    api.check_prerequisites.return_value = passing_check()
    api.update_entity_fields.return_value = FieldUpdateResult(success=True)
    api.commit_transition.return_value = CommitResult(success=True)
    return api


# ── Reference authority on SQLite ─────────────────────────────────────────────

@pytest.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await init_db(bind=engine)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
async def http(session_factory):
    """httpx client wired straight into the FastAPI app."""

    async def override_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://authority"
    ) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
async def api(http):
    """The real client, talking to the in-process authority."""
    return LifecycleApiClient(http_client=http)


async def create_required_fields(http, contexts=("LIFECYCLE_ACTIVATION",)):
    """Two required fields: a TEXT and a DROPDOWN."""
    tax = await http.post("/api/field-definitions", json={
        "name": "Tax Number",
        "slug": "tax_number",
        "fieldType": "TEXT",
        "groupName": "Compliance",
        "requiredForContexts": list(contexts),
    })
    industry = await http.post("/api/field-definitions", json={
        "name": "Industry",
        "slug": "industry",
        "fieldType": "DROPDOWN",
        "groupName": "Profile",
        "options": ["Legal", "Finance"],
        "requiredForContexts": list(contexts),
    })
    assert tax.status_code == 201, tax.text
    assert industry.status_code == 201, industry.text


async def create_customer(http, status="PROSPECT", email="billing@acme.com", custom_fields=None):
    response = await http.post("/api/customers", json={
        "name": "Acme Corp",
        "email": email,
        "lifecycleStatus": status,
        "customFields": custom_fields or {},
    })
    assert response.status_code == 201, response.text
    return response.json()["id"]
