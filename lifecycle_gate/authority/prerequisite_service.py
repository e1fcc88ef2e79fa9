"""
Prerequisite Service
====================
The authoritative check: required custom fields + structural rules
for a (context, entity) pair. Read-only.

Portal contacts are not stored here; the customer email stands in for
"a portal contact with an email". DOCUMENT_GENERATION has no structural
rules, only required fields.
"""

import uuid as _uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lifecycle_gate.authority.errors import ResourceNotFoundError, UnsupportedEntityTypeError
from lifecycle_gate.core.prerequisites import (
    MISSING_FIELD,
    STRUCTURAL,
    FieldViolation,
    PrerequisiteCheck,
    PrerequisiteContext,
    StructuralViolation,
)
from lifecycle_gate.db.models import Customer, FieldDefinition


SUPPORTED_ENTITY_TYPES = {"CUSTOMER"}


# ── Field completeness ────────────────────────────────────────────────────────

def is_field_filled(value) -> bool:
    """Blank strings and empty collections count as missing."""
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, dict)):
        return bool(value)
    return True


def is_blank(value) -> bool:
    return value is None or not str(value).strip()


def build_field_violation(definition: FieldDefinition, context: PrerequisiteContext,
                          entity_type: str, entity_id) -> FieldViolation:
    return FieldViolation(
        code=MISSING_FIELD,
        message=f"{definition.name} is required for {context.display_label}",
        entity_type=entity_type,
        entity_id=str(entity_id),
        field_slug=definition.slug,
        group_name=definition.group_name,
        resolution=f"Fill the {definition.name} field on the customer profile",
    )


# ── Structural rules ──────────────────────────────────────────────────────────

def check_structural(context: PrerequisiteContext, customer: Customer) -> list:
    violations = []

    if context == PrerequisiteContext.INVOICE_GENERATION and is_blank(customer.email):
        violations.append(StructuralViolation(
            code=STRUCTURAL,
            message="Customer must have an email address for invoice delivery",
            entity_type="CUSTOMER",
            entity_id=str(customer.id),
            resolution="Set the customer email on the customer detail page",
        ))

    if context == PrerequisiteContext.PROPOSAL_SEND and is_blank(customer.email):
        violations.append(StructuralViolation(
            code=STRUCTURAL,
            message="Customer must have an email address to send a proposal",
            entity_type="CUSTOMER",
            entity_id=str(customer.id),
            resolution="Set the customer email on the customer detail page",
        ))

    return violations


# ── Service ───────────────────────────────────────────────────────────────────

class PrerequisiteService:
    """Evaluates prerequisite checks against the database"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def required_fields(self, entity_type: str, context: PrerequisiteContext) -> list:
        result = await self.session.execute(
            select(FieldDefinition)
            .where(FieldDefinition.entity_type == entity_type)
            .where(FieldDefinition.active.is_(True))
            .order_by(FieldDefinition.created_at, FieldDefinition.slug)
        )
        return [
            fd for fd in result.scalars().all()
            if context.value in (fd.required_for_contexts or [])
        ]

    async def load_customer(self, entity_id) -> Customer:
        try:
            customer_id = _uuid.UUID(str(entity_id))
        except ValueError:
            raise ResourceNotFoundError("Customer", entity_id)
        customer = await self.session.get(Customer, customer_id)
        if customer is None:
            raise ResourceNotFoundError("Customer", entity_id)
        return customer

    async def check_for_context(self, context: PrerequisiteContext, entity_type: str,
                                entity_id) -> PrerequisiteCheck:
        if entity_type not in SUPPORTED_ENTITY_TYPES:
            raise UnsupportedEntityTypeError(
                f"Prerequisite checks not yet supported for entity type: {entity_type}"
            )

        customer = await self.load_customer(entity_id)
        custom_fields = customer.custom_fields or {}

        violations = [
            build_field_violation(fd, context, entity_type, customer.id)
            for fd in await self.required_fields(entity_type, context)
            if not is_field_filled(custom_fields.get(fd.slug))
        ]
        violations.extend(check_structural(context, customer))

        return PrerequisiteCheck.from_violations(context, violations)
