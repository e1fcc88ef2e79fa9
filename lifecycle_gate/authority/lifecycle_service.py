"""
Lifecycle Service
=================
Database-backed lifecycle transitions. Every transition is persisted
together with an audit event. Gated transitions re-run the prerequisite
check here, inside the same transaction - this is the authoritative check.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lifecycle_gate.authority.errors import (
    InvalidStateError,
    PrerequisitesNotMetError,
    ResourceNotFoundError,
)
from lifecycle_gate.authority.prerequisite_service import PrerequisiteService
from lifecycle_gate.core.lifecycle_fsm import gating_context, is_valid_transition, requires_notes
from lifecycle_gate.core.lifecycle_states import LifecycleState
from lifecycle_gate.db.models import Customer, LifecycleEvent


logger = logging.getLogger(__name__)


@dataclass
class DormancyCandidate:
    customer: Customer
    last_activity_at: datetime
    days_since_activity: int

    @property
    def id(self):
        return self.customer.id

    @property
    def name(self) -> str:
        return self.customer.name

    @property
    def current_status(self) -> str:
        return self.customer.lifecycle_status


class LifecycleService:
    """
    Lifecycle transitions that persist to the database.
    Every transition = customer update + event row, one commit.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.prerequisites = PrerequisiteService(session)

    async def transition(self, customer_id, target, notes: str = None, actor: str = None) -> Customer:
        target = LifecycleState(target)

        # 1. Load customer (with row lock to prevent concurrent transitions)
        try:
            key = uuid.UUID(str(customer_id))
        except ValueError:
            raise ResourceNotFoundError("Customer", customer_id)
        result = await self.session.execute(
            select(Customer).where(Customer.id == key).with_for_update()
        )
        customer = result.scalar_one_or_none()

        if not customer:
            raise ResourceNotFoundError("Customer", customer_id)

        current = LifecycleState(customer.lifecycle_status)

        # 2. Look up the transition graph
        if not is_valid_transition(current, target):
            raise InvalidStateError(
                "Invalid lifecycle transition",
                f"Cannot transition from {current.value} to {target.value}",
            )

        # 3. Some transitions must be explained
        if requires_notes(current, target) and not (notes or "").strip():
            raise InvalidStateError(
                "Notes required",
                f"Notes are required to transition from {current.value} to {target.value}",
            )

        # 4. Gated transitions: the authoritative prerequisite check
        context = gating_context(current, target)
        if context is not None:
            check = await self.prerequisites.check_for_context(context, "CUSTOMER", customer.id)
            if not check.passed:
                logger.info(
                    "Blocked %s → %s for customer %s: %d violation(s)",
                    current.value, target.value, customer.id, len(check.violations),
                )
                raise PrerequisitesNotMetError(check)

        # 5. Create IMMUTABLE event log entry
        now = datetime.now(timezone.utc)
        self.session.add(LifecycleEvent(
            id=uuid.uuid4(),
            customer_id=customer.id,
            from_state=current.value,
            event="LIFECYCLE_TRANSITION",
            to_state=target.value,
            payload={"notes": notes, "actor": actor},
            occurred_at=now,
        ))

        # 6. Update customer's current state
        customer.lifecycle_status = target.value
        customer.lifecycle_status_changed_at = now
        customer.lifecycle_status_changed_by = actor
        if target == LifecycleState.OFFBOARDED:
            customer.offboarded_at = now
        elif current == LifecycleState.OFFBOARDED:
            customer.offboarded_at = None

        # 7. Commit
        await self.session.commit()

        logger.info("Customer %s: %s → %s", str(customer.id)[:8], current.value, target.value)
        return customer

    async def dormancy_candidates(self, threshold_days: int, now: datetime = None) -> list:
        """
        ACTIVE customers with no lifecycle activity for ``threshold_days``.
        Last activity = lifecycle_status_changed_at, or updated_at if never transitioned.
        Oldest first. Read-only: nobody is moved to DORMANT here.
        """
        now = now or datetime.now(timezone.utc)
        result = await self.session.execute(
            select(Customer).where(Customer.lifecycle_status == LifecycleState.ACTIVE.value)
        )

        candidates = []
        for customer in result.scalars().all():
            last_activity = customer.lifecycle_status_changed_at or customer.updated_at
            if last_activity is None:
                continue
            if last_activity.tzinfo is None:
                last_activity = last_activity.replace(tzinfo=timezone.utc)
            days = (now - last_activity).days
            if days >= threshold_days:
                candidates.append(DormancyCandidate(customer, last_activity, days))

        candidates.sort(key=lambda c: c.last_activity_at)
        logger.info("Dormancy check (%d days): %d candidate(s)", threshold_days, len(candidates))
        return candidates

    async def history(self, customer_id) -> list:
        result = await self.session.execute(
            select(LifecycleEvent)
            .where(LifecycleEvent.customer_id == customer_id)
            .order_by(LifecycleEvent.occurred_at)
        )
        return list(result.scalars().all())
