"""
Customer Service
================
Customer records, custom field values, field definitions
"""

import logging
import uuid as _uuid
from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lifecycle_gate.authority.errors import (
    FieldValidationError,
    InvalidStateError,
    ResourceNotFoundError,
    UnsupportedEntityTypeError,
)
from lifecycle_gate.core.lifecycle_states import LifecycleState
from lifecycle_gate.db.models import Customer, FieldDefinition


logger = logging.getLogger(__name__)

FIELD_TYPES = {"TEXT", "NUMBER", "DATE", "DROPDOWN", "BOOLEAN"}


# ── Value validation ──────────────────────────────────────────────────────────

def coerce_field_value(definition: FieldDefinition, value):
    """Return the value to store, or raise FieldValidationError."""
    name = definition.name
    field_type = definition.field_type

    if field_type == "TEXT":
        if not isinstance(value, str):
            raise FieldValidationError(f"{name} must be text")
        return value

    if field_type == "NUMBER":
        if isinstance(value, bool):
            raise FieldValidationError(f"{name} must be a number")
        if isinstance(value, (int, float)):
            return value
        try:
            return float(str(value).strip())
        except ValueError:
            raise FieldValidationError(f"{name} must be a number")

    if field_type == "DATE":
        try:
            date.fromisoformat(str(value))
        except ValueError:
            raise FieldValidationError(f"{name} must be a date (YYYY-MM-DD)")
        return str(value)

    if field_type == "DROPDOWN":
        options = definition.options or []
        if options and value not in options:
            raise FieldValidationError(
                f"{name} must be one of: {', '.join(options)}"
            )
        return value

    if field_type == "BOOLEAN":
        if not isinstance(value, bool):
            raise FieldValidationError(f"{name} must be true or false")
        return value

    return value


# ── Service ───────────────────────────────────────────────────────────────────

class CustomerService:

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_customer(self, customer_id) -> Customer:
        try:
            key = _uuid.UUID(str(customer_id))
        except ValueError:
            raise ResourceNotFoundError("Customer", customer_id)
        customer = await self.session.get(Customer, key)
        if customer is None:
            raise ResourceNotFoundError("Customer", customer_id)
        return customer

    async def create_customer(self, name: str, email=None,
                              lifecycle_status=LifecycleState.PROSPECT,
                              custom_fields=None) -> Customer:
        values = await self.validate_custom_fields("CUSTOMER", custom_fields or {})
        customer = Customer(
            id=_uuid.uuid4(),
            name=name,
            email=email,
            lifecycle_status=LifecycleState(lifecycle_status).value,
            custom_fields={k: v for k, v in values.items() if v is not None},
        )
        self.session.add(customer)
        await self.session.commit()
        logger.info("Created customer %s in %s", customer.id, customer.lifecycle_status)
        return customer

    async def field_definitions(self, entity_type: str) -> dict:
        result = await self.session.execute(
            select(FieldDefinition)
            .where(FieldDefinition.entity_type == entity_type)
            .where(FieldDefinition.active.is_(True))
        )
        return {fd.slug: fd for fd in result.scalars().all()}

    async def validate_custom_fields(self, entity_type: str, values: dict) -> dict:
        definitions = await self.field_definitions(entity_type)
        cleaned = {}
        for slug, value in values.items():
            definition = definitions.get(slug)
            if definition is None:
                raise FieldValidationError(f"Unknown field: {slug}")
            cleaned[slug] = None if value is None else coerce_field_value(definition, value)
        return cleaned

    async def update_custom_fields(self, entity_type: str, entity_id, values: dict) -> Customer:
        """Merge ``values`` into the entity's custom fields in one write. None clears a field."""
        if entity_type != "CUSTOMER":
            raise UnsupportedEntityTypeError(
                f"Custom field updates not yet supported for entity type: {entity_type}"
            )
        customer = await self.get_customer(entity_id)
        cleaned = await self.validate_custom_fields(entity_type, values)

        merged = dict(customer.custom_fields or {})
        for slug, value in cleaned.items():
            if value is None:
                merged.pop(slug, None)
            else:
                merged[slug] = value

        # Reassign so the JSON column is flagged dirty
        customer.custom_fields = merged
        await self.session.commit()
        logger.info("Updated %d custom field(s) on customer %s", len(cleaned), customer.id)
        return customer

    async def create_field_definition(self, **values) -> FieldDefinition:
        if values.get("field_type") not in FIELD_TYPES:
            raise FieldValidationError(f"Unknown field type: {values.get('field_type')}")

        existing = await self.session.execute(
            select(FieldDefinition).where(FieldDefinition.slug == values["slug"])
        )
        if existing.scalar_one_or_none():
            raise InvalidStateError(
                "Duplicate field", f"A field with slug '{values['slug']}' already exists"
            )

        values["required_for_contexts"] = [
            getattr(c, "value", c) for c in values.get("required_for_contexts", [])
        ]
        definition = FieldDefinition(id=_uuid.uuid4(), **values)
        self.session.add(definition)
        await self.session.commit()
        return definition

    async def list_field_definitions(self, entity_type: str) -> list:
        result = await self.session.execute(
            select(FieldDefinition)
            .where(FieldDefinition.entity_type == entity_type)
            .order_by(FieldDefinition.created_at, FieldDefinition.slug)
        )
        return list(result.scalars().all())
