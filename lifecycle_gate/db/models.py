"""
Database Models
===============
Customer = current lifecycle state + custom field values
FieldDefinition = which custom fields exist and which contexts require them
LifecycleEvent = immutable history (audit log)
"""

import uuid
from datetime import datetime, timezone
from sqlalchemy import Boolean, Column, String, DateTime, JSON, ForeignKey, Uuid
from sqlalchemy.orm import DeclarativeBase, relationship


def utcnow():
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class Customer(Base):
    """
    The Customer table stores the CURRENT lifecycle state.
    Only the lifecycle service writes lifecycle_status.
    """
    __tablename__ = "customers"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    # Customer data
    name = Column(String(255), nullable=False)
    email = Column(String(320), nullable=True)
    custom_fields = Column(JSON, nullable=False, default=dict)

    # Lifecycle - THE SINGLE SOURCE OF TRUTH
    lifecycle_status = Column(String(50), nullable=False, default="PROSPECT")
    lifecycle_status_changed_at = Column(DateTime(timezone=True), nullable=True)
    lifecycle_status_changed_by = Column(String(255), nullable=True)
    offboarded_at = Column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    # Relationship to events
    events = relationship("LifecycleEvent", back_populates="customer", order_by="LifecycleEvent.occurred_at")


class FieldDefinition(Base):
    """A custom field, and the prerequisite contexts that require it."""
    __tablename__ = "field_definitions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    entity_type = Column(String(50), nullable=False, default="CUSTOMER")
    name = Column(String(255), nullable=False)
    slug = Column(String(100), nullable=False, unique=True)
    field_type = Column(String(20), nullable=False, default="TEXT")
    group_name = Column(String(255), nullable=True)
    options = Column(JSON, nullable=False, default=list)
    required_for_contexts = Column(JSON, nullable=False, default=list)
    active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), default=utcnow)


class LifecycleEvent(Base):
    """
    The Event Log - IMMUTABLE history.
    Every lifecycle transition creates a new row here.
    Never updated or deleted - append-only.
    """
    __tablename__ = "lifecycle_events"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    customer_id = Column(Uuid, ForeignKey("customers.id"), nullable=False)

    # What happened?
    from_state = Column(String(50), nullable=False)
    event = Column(String(100), nullable=False)
    to_state = Column(String(50), nullable=False)

    # Extra data (notes, actor, etc.)
    payload = Column(JSON, nullable=True)

    # When?
    occurred_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    # Relationship
    customer = relationship("Customer", back_populates="events")
