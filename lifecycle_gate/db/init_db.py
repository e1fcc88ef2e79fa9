"""
Initialize database tables
Run this once to create tables and seed the default field definitions:

    python -m lifecycle_gate.db.init_db
"""

import asyncio

from sqlalchemy import select

from lifecycle_gate.core.prerequisites import PrerequisiteContext
from lifecycle_gate.db.database import async_session_factory, init_db
from lifecycle_gate.db.models import FieldDefinition


DEFAULT_FIELD_DEFINITIONS = [
    {
        "name": "Tax Number",
        "slug": "tax_number",
        "field_type": "TEXT",
        "group_name": "Compliance",
        "required_for_contexts": [
            PrerequisiteContext.LIFECYCLE_ACTIVATION.value,
            PrerequisiteContext.INVOICE_GENERATION.value,
        ],
    },
    {
        "name": "Billing Address",
        "slug": "billing_address",
        "field_type": "TEXT",
        "group_name": "Billing",
        "required_for_contexts": [PrerequisiteContext.INVOICE_GENERATION.value],
    },
    {
        "name": "Industry",
        "slug": "industry",
        "field_type": "DROPDOWN",
        "group_name": "Profile",
        "options": ["Legal", "Finance", "Healthcare", "Technology", "Other"],
        "required_for_contexts": [PrerequisiteContext.LIFECYCLE_ACTIVATION.value],
    },
]


async def seed_field_definitions(session_factory=async_session_factory):
    """Insert the default field definitions that are not there yet. Returns how many were added."""
    created = 0
    async with session_factory() as session:
        for definition in DEFAULT_FIELD_DEFINITIONS:
            result = await session.execute(
                select(FieldDefinition).where(FieldDefinition.slug == definition["slug"])
            )
            if result.scalar_one_or_none():
                continue
            session.add(FieldDefinition(entity_type="CUSTOMER", **definition))
            created += 1
        await session.commit()
    return created


async def main():
    await init_db()
    print("✅ Database tables created")
    created = await seed_field_definitions()
    print(f"✅ Seeded {created} field definition(s)")


if __name__ == "__main__":
    print("Creating database tables...")
    asyncio.run(main())
