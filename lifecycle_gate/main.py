"""
Customer Lifecycle Authority - API
==================================
FastAPI application: prerequisite checks, custom field updates and
lifecycle transitions for customers
"""

import logging
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from lifecycle_gate.authority.customer_service import CustomerService
from lifecycle_gate.authority.errors import (
    FieldValidationError,
    InvalidStateError,
    PrerequisitesNotMetError,
    ResourceNotFoundError,
)
from lifecycle_gate.authority.lifecycle_service import LifecycleService
from lifecycle_gate.authority.prerequisite_service import PrerequisiteService
from lifecycle_gate.config import configure_logging, get_settings
from lifecycle_gate.core.lifecycle_fsm import build_transition_menu, requires_prerequisite_check
from lifecycle_gate.core.prerequisites import PrerequisiteContext
from lifecycle_gate.db.database import get_session
from lifecycle_gate.schemas import (
    CustomFieldsUpdateRequest,
    CustomerCreateRequest,
    CustomerResponse,
    DormancyCandidateResponse,
    DormancyCheckResponse,
    FieldDefinitionCreateRequest,
    FieldDefinitionResponse,
    LifecycleEventResponse,
    MenuEntryResponse,
    PrerequisiteCheckSchema,
    PrerequisiteRejection,
    TransitionRequestBody,
    TransitionResponse,
    ViolationSchema,
)


logger = logging.getLogger(__name__)

app = FastAPI(
    title="Customer Lifecycle Authority",
    description="Lifecycle transitions with prerequisite gating",
    version="1.0.0"
)


# ── Error Handlers ────────────────────────────────────────────────────────────

@app.exception_handler(ResourceNotFoundError)
async def not_found_handler(request: Request, exc: ResourceNotFoundError):
    return JSONResponse(status_code=404, content={"title": "Not found", "detail": str(exc)})


@app.exception_handler(InvalidStateError)
async def invalid_state_handler(request: Request, exc: InvalidStateError):
    return JSONResponse(status_code=409, content={"title": exc.title, "detail": exc.detail})


@app.exception_handler(FieldValidationError)
async def field_validation_handler(request: Request, exc: FieldValidationError):
    return JSONResponse(status_code=400, content={"title": "Invalid request", "detail": str(exc)})


@app.exception_handler(PrerequisitesNotMetError)
async def prerequisites_handler(request: Request, exc: PrerequisitesNotMetError):
    body = PrerequisiteRejection(
        detail=exc.detail,
        context=exc.check.context,
        violations=[ViolationSchema.from_domain(v) for v in exc.check.violations],
    )
    return JSONResponse(status_code=422, content=body.model_dump(mode="json", by_alias=True))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    # 422 is reserved for unmet prerequisites
    detail = "; ".join(
        f"{'.'.join(str(part) for part in error['loc'][1:]) or error['loc'][0]}: {error['msg']}"
        for error in exc.errors()
    )
    if request.url.path.endswith("/transition"):
        return JSONResponse(status_code=409, content={"title": "Invalid lifecycle transition", "detail": detail})
    return JSONResponse(status_code=400, content={"title": "Invalid request", "detail": detail})


# ── Endpoints ─────────────────────────────────────────────────────────────────

@app.get("/")
async def root():
    return {
        "service": "Customer Lifecycle Authority",
        "version": "1.0.0",
        "status": "running"
    }


@app.get("/health")
async def health():
    """Health check endpoint"""
    return {"status": "healthy"}


@app.get("/api/prerequisites/check", response_model=PrerequisiteCheckSchema)
async def check_prerequisites(context: str, entityType: str, entityId: str,
                              session: AsyncSession = Depends(get_session)):
    """Run a context check against one entity. Read-only."""
    try:
        parsed = PrerequisiteContext(context)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown prerequisite context: {context}")

    check = await PrerequisiteService(session).check_for_context(parsed, entityType, entityId)
    return PrerequisiteCheckSchema.from_domain(check)


@app.post("/api/customers", status_code=201, response_model=CustomerResponse)
async def create_customer(body: CustomerCreateRequest, session: AsyncSession = Depends(get_session)):
    return await CustomerService(session).create_customer(
        name=body.name,
        email=body.email,
        lifecycle_status=body.lifecycle_status,
        custom_fields=body.custom_fields,
    )


@app.get("/api/customers/{customer_id}", response_model=CustomerResponse)
async def get_customer(customer_id: str, session: AsyncSession = Depends(get_session)):
    return await CustomerService(session).get_customer(customer_id)


@app.put("/api/customers/{customer_id}/custom-fields", response_model=CustomerResponse)
async def update_custom_fields(customer_id: str, body: CustomFieldsUpdateRequest,
                               session: AsyncSession = Depends(get_session)):
    """Batched update of custom field values. Unlisted fields are untouched."""
    return await CustomerService(session).update_custom_fields(
        "CUSTOMER", customer_id, body.custom_fields
    )


@app.post("/api/customers/{customer_id}/transition", response_model=TransitionResponse)
async def transition_customer(customer_id: str, body: TransitionRequestBody,
                              x_actor: Optional[str] = Header(default=None),
                              session: AsyncSession = Depends(get_session)):
    """
    Move a customer to a new lifecycle state.

    409 if the move is not in the transition graph (or notes are missing),
    422 with violations if a gated move has unmet prerequisites.
    The optional X-Actor header is recorded as who made the change.
    """
    return await LifecycleService(session).transition(
        customer_id, body.target_status, notes=body.notes, actor=x_actor
    )


@app.post("/api/customers/dormancy-check", response_model=DormancyCheckResponse)
async def dormancy_check(session: AsyncSession = Depends(get_session)):
    """List ACTIVE customers with no recent lifecycle activity. Changes nothing."""
    threshold = get_settings().dormancy_threshold_days
    candidates = await LifecycleService(session).dormancy_candidates(threshold)
    return DormancyCheckResponse(
        threshold_days=threshold,
        candidates=[DormancyCandidateResponse.model_validate(c) for c in candidates],
    )


@app.get("/api/customers/{customer_id}/transitions", response_model=list[MenuEntryResponse])
async def available_transitions(customer_id: str, session: AsyncSession = Depends(get_session)):
    """Transition menu for the customer's current state"""
    customer = await CustomerService(session).get_customer(customer_id)
    return [
        MenuEntryResponse(
            kind=entry.kind,
            target=entry.target,
            label=entry.label,
            destructive=entry.destructive,
            requires_prerequisite_check=(
                entry.target is not None
                and requires_prerequisite_check(customer.lifecycle_status, entry.target)
            ),
        )
        for entry in build_transition_menu(customer.lifecycle_status)
    ]


@app.get("/api/customers/{customer_id}/lifecycle", response_model=list[LifecycleEventResponse])
async def lifecycle_history(customer_id: str, session: AsyncSession = Depends(get_session)):
    """Get full lifecycle history for a customer (audit trail)"""
    customer = await CustomerService(session).get_customer(customer_id)
    return await LifecycleService(session).history(customer.id)


@app.post("/api/field-definitions", status_code=201, response_model=FieldDefinitionResponse)
async def create_field_definition(body: FieldDefinitionCreateRequest,
                                  session: AsyncSession = Depends(get_session)):
    return await CustomerService(session).create_field_definition(**body.model_dump())


@app.get("/api/field-definitions", response_model=list[FieldDefinitionResponse])
async def list_field_definitions(entityType: Optional[str] = "CUSTOMER",
                                 session: AsyncSession = Depends(get_session)):
    return await CustomerService(session).list_field_definitions(entityType)


if __name__ == "__main__":
    import uvicorn
    configure_logging()
    uvicorn.run(app, host="0.0.0.0", port=8000)
