"""
Wire Schemas
============
JSON shapes shared by the HTTP client and the reference authority.
camelCase on the wire, snake_case in Python.
"""

from datetime import datetime
from typing import Any, Optional
import uuid

from pydantic import BaseModel, ConfigDict, EmailStr
from pydantic.alias_generators import to_camel

from lifecycle_gate.core.lifecycle_states import LifecycleState
from lifecycle_gate.core.prerequisites import (
    FieldViolation,
    PrerequisiteCheck,
    PrerequisiteContext,
    StructuralViolation,
)


class WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ── Prerequisites ─────────────────────────────────────────────────────────────

class ViolationSchema(WireModel):
    code: str
    message: str
    entity_type: str
    entity_id: str
    field_slug: Optional[str] = None
    group_name: Optional[str] = None
    resolution: Optional[str] = None

    def to_domain(self):
        """A non-empty fieldSlug makes the violation field-shaped."""
        if self.field_slug:
            return FieldViolation(
                code=self.code,
                message=self.message,
                entity_type=self.entity_type,
                entity_id=self.entity_id,
                field_slug=self.field_slug,
                group_name=self.group_name,
                resolution=self.resolution,
            )
        return StructuralViolation(
            code=self.code,
            message=self.message,
            entity_type=self.entity_type,
            entity_id=self.entity_id,
            group_name=self.group_name,
            resolution=self.resolution,
        )

    @classmethod
    def from_domain(cls, violation) -> "ViolationSchema":
        return cls(
            code=violation.code,
            message=violation.message,
            entity_type=violation.entity_type,
            entity_id=violation.entity_id,
            field_slug=getattr(violation, "field_slug", None),
            group_name=violation.group_name,
            resolution=violation.resolution,
        )


class PrerequisiteCheckSchema(WireModel):
    passed: bool
    context: PrerequisiteContext
    violations: list[ViolationSchema] = []

    def to_domain(self) -> PrerequisiteCheck:
        return PrerequisiteCheck(
            passed=self.passed,
            context=self.context,
            violations=[v.to_domain() for v in self.violations],
        )

    @classmethod
    def from_domain(cls, check: PrerequisiteCheck) -> "PrerequisiteCheckSchema":
        return cls(
            passed=check.passed,
            context=check.context,
            violations=[ViolationSchema.from_domain(v) for v in check.violations],
        )


class PrerequisiteRejection(WireModel):
    """422 body of a transition blocked by prerequisites."""
    title: str = "Prerequisites not met"
    detail: str
    context: PrerequisiteContext
    violations: list[ViolationSchema]

    def to_check(self) -> PrerequisiteCheck:
        return PrerequisiteCheck.from_violations(
            self.context, [v.to_domain() for v in self.violations]
        )


# ── Requests ──────────────────────────────────────────────────────────────────

class CustomerCreateRequest(WireModel):
    name: str
    email: Optional[EmailStr] = None
    lifecycle_status: LifecycleState = LifecycleState.PROSPECT
    custom_fields: dict[str, Any] = {}


class CustomFieldsUpdateRequest(WireModel):
    custom_fields: dict[str, Any]


class TransitionRequestBody(WireModel):
    target_status: LifecycleState
    notes: Optional[str] = None


class FieldDefinitionCreateRequest(WireModel):
    entity_type: str = "CUSTOMER"
    name: str
    slug: str
    field_type: str = "TEXT"
    group_name: Optional[str] = None
    options: list[str] = []
    required_for_contexts: list[PrerequisiteContext] = []


# ── Responses ─────────────────────────────────────────────────────────────────

class CustomerResponse(WireModel):
    id: uuid.UUID
    name: str
    email: Optional[str]
    lifecycle_status: LifecycleState
    lifecycle_status_changed_at: Optional[datetime]
    lifecycle_status_changed_by: Optional[str]
    offboarded_at: Optional[datetime]
    custom_fields: dict[str, Any]
    created_at: datetime
    updated_at: datetime


class TransitionResponse(WireModel):
    id: uuid.UUID
    name: str
    lifecycle_status: LifecycleState
    lifecycle_status_changed_at: Optional[datetime]
    lifecycle_status_changed_by: Optional[str]


class FieldDefinitionResponse(WireModel):
    id: uuid.UUID
    entity_type: str
    name: str
    slug: str
    field_type: str
    group_name: Optional[str]
    options: list[str]
    required_for_contexts: list[PrerequisiteContext]


class LifecycleEventResponse(WireModel):
    from_state: str
    event: str
    to_state: str
    payload: Optional[dict[str, Any]]
    occurred_at: datetime


class MenuEntryResponse(WireModel):
    kind: str
    target: Optional[LifecycleState] = None
    label: str = ""
    destructive: bool = False
    requires_prerequisite_check: bool = False


class DormancyCandidateResponse(WireModel):
    id: uuid.UUID
    name: str
    last_activity_at: datetime
    days_since_activity: int
    current_status: LifecycleState


class DormancyCheckResponse(WireModel):
    threshold_days: int
    candidates: list[DormancyCandidateResponse]
