"""
Transition Orchestrator
=======================
Runs one lifecycle transition attempt for one customer:

    IDLE ──select target──► CHECKING_PREREQUISITES (gated pairs only)
                                 │
              ┌──────────────────┴───────────────────┐
              ▼                                      ▼
    PREREQUISITE_MODAL_OPEN ──resolved──► CONFIRM_DIALOG_OPEN ──confirm──► COMMITTING
              ▲                                      ▲                        │
              │              422 with violations     │    other failure       │
              └──────────────────────────────────────┴────────────────────────┤
                                                                   success → IDLE

The phase is a single value, so both dialogs can never be open together.
The most recent check result always wins, whether it came from the
pre-check or from the commit's own rejection.
"""

import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from lifecycle_gate.client.api_client import CommitResult
from lifecycle_gate.core.errors import (
    BackendUnavailableError,
    InvalidTransitionError,
    TransitionFailure,
    TransitionInProgressError,
)
from lifecycle_gate.core.lifecycle_fsm import (
    build_transition_menu,
    gating_context,
    is_valid_transition,
    requires_notes,
)
from lifecycle_gate.core.lifecycle_states import LifecycleState
from lifecycle_gate.core.prerequisites import PrerequisiteCheck, PrerequisiteContext
from lifecycle_gate.gating.confirmation import ConfirmationGate
from lifecycle_gate.gating.resolver import ViolationResolver


logger = logging.getLogger(__name__)

GENERIC_ERROR = "Something went wrong. Please try again."
UNREACHABLE_ERROR = "Unable to reach the server. Please try again."


class OrchestratorPhase(str, Enum):
    IDLE = "IDLE"
    CHECKING_PREREQUISITES = "CHECKING_PREREQUISITES"
    PREREQUISITE_MODAL_OPEN = "PREREQUISITE_MODAL_OPEN"
    CONFIRM_DIALOG_OPEN = "CONFIRM_DIALOG_OPEN"
    COMMITTING = "COMMITTING"


@dataclass
class TransitionRequest:
    """One in-flight attempt. Never persisted."""
    entity_id: str
    source: LifecycleState
    target: LifecycleState
    requires_check: bool
    context: Optional[PrerequisiteContext] = None
    notes_required: bool = False
    notes: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))


class TransitionOrchestrator:

    def __init__(self, api, entity_id: str, current_state: LifecycleState,
                 entity_type: str = "CUSTOMER", field_values: dict = None,
                 on_committed: Callable[[LifecycleState], None] = None):
        self.api = api
        self.entity_id = str(entity_id)
        self.entity_type = entity_type
        # Mirror only; changed after a commit succeeds, never before
        self.current_state = LifecycleState(current_state)
        self.field_values = dict(field_values or {})
        self.on_committed = on_committed

        self.phase = OrchestratorPhase.IDLE
        self.request: Optional[TransitionRequest] = None
        self.resolver: Optional[ViolationResolver] = None
        self.confirmation: Optional[ConfirmationGate] = None
        self.last_check: Optional[PrerequisiteCheck] = None
        self.last_failure: Optional[TransitionFailure] = None
        self.error: Optional[str] = None

    # ── Trigger ───────────────────────────────────────────────────────────────

    @property
    def menu(self) -> list:
        return build_transition_menu(self.current_state)

    @property
    def has_transition_control(self) -> bool:
        """States with no exits render no control at all."""
        return bool(self.menu)

    @property
    def trigger_disabled(self) -> bool:
        return self.phase != OrchestratorPhase.IDLE

    # ── Flow ──────────────────────────────────────────────────────────────────

    async def request_transition(self, target: LifecycleState) -> OrchestratorPhase:
        if self.phase != OrchestratorPhase.IDLE:
            raise TransitionInProgressError(
                f"Transition {self.request.id if self.request else ''} still open for {self.entity_id}"
            )
        target = LifecycleState(target)
        if not is_valid_transition(self.current_state, target):
            raise InvalidTransitionError(
                f"Cannot transition from {self.current_state.value} to {target.value}"
            )

        context = gating_context(self.current_state, target)
        request = TransitionRequest(
            entity_id=self.entity_id,
            source=self.current_state,
            target=target,
            requires_check=context is not None,
            context=context,
            notes_required=requires_notes(self.current_state, target),
        )
        self.request = request
        self.error = None
        self.last_failure = None
        self.last_check = None

        if not request.requires_check:
            self._open_confirmation(request)
            return self.phase

        self._set_phase(OrchestratorPhase.CHECKING_PREREQUISITES)
        try:
            check = await self.api.check_prerequisites(request.context, self.entity_type, self.entity_id)
        except BackendUnavailableError as e:
            if self._is_stale(request):
                return self.phase
            # Fail open: the commit is still checked by the authority
            logger.warning(
                "Could not verify %s prerequisites for %s, proceeding to confirmation: %s",
                request.context.value, self.entity_id, e,
            )
            self.last_failure = TransitionFailure.GATING_UNAVAILABLE
            self._open_confirmation(request)
            return self.phase
        except Exception:
            if not self._is_stale(request):
                self._fail_unexpected()
            return self.phase

        if self._is_stale(request):
            return self.phase

        self.last_check = check
        if check.passed:
            self._open_confirmation(request)
        else:
            self.last_failure = TransitionFailure.PREREQUISITES_UNMET
            self._open_resolver(request, check)
        return self.phase

    async def confirm(self, notes: str = None) -> Optional[CommitResult]:
        """Confirm in the open gate. None if there was nothing to confirm."""
        gate = self.confirmation
        request = self.request
        if self.phase != OrchestratorPhase.CONFIRM_DIALOG_OPEN or gate is None:
            return None
        if notes is not None:
            gate.set_notes(notes)

        try:
            result = await gate.confirm()
        except Exception:
            if not self._is_stale(request):
                self._fail_unexpected()
            return None

        if result is None or self._is_stale(request):
            return result

        if result.success:
            self.current_state = result.lifecycle_status or request.target
            logger.info("Customer %s is now %s", self.entity_id, self.current_state.value)
            self._reset()
            if self.on_committed is not None:
                self.on_committed(self.current_state)
        elif result.blocked_by_prerequisites:
            # The commit's own rejection is the newest truth
            self.last_failure = TransitionFailure.COMMIT_REJECTED_BY_PREREQUISITES
            self.last_check = result.prerequisite_check
            self._open_resolver(request, result.prerequisite_check)
        else:
            self.last_failure = TransitionFailure.COMMIT_REJECTED_OTHER
            self._set_phase(OrchestratorPhase.CONFIRM_DIALOG_OPEN)
        return result

    async def resolve(self):
        """Resolve in the open prerequisite modal."""
        resolver = self.resolver
        if self.phase != OrchestratorPhase.PREREQUISITE_MODAL_OPEN or resolver is None:
            return None
        return await resolver.resolve()

    def cancel(self):
        """Close whatever is open. Late results for the dropped request are ignored."""
        if self.request is not None:
            logger.debug("Cancelled transition %s", self.request.id)
        if self.confirmation is not None:
            self.confirmation.cancel()
        if self.resolver is not None:
            self.resolver.close()
        self._reset()

    # ── Internals ─────────────────────────────────────────────────────────────

    async def _commit(self, request: TransitionRequest) -> CommitResult:
        self._set_phase(OrchestratorPhase.COMMITTING)
        try:
            return await self.api.commit_transition(self.entity_id, request.target, notes=request.notes)
        except BackendUnavailableError as e:
            logger.warning("Commit of %s for %s failed: %s", request.target.value, self.entity_id, e)
            return CommitResult(success=False, error=UNREACHABLE_ERROR)
        finally:
            if not self._is_stale(request) and self.phase == OrchestratorPhase.COMMITTING:
                self._set_phase(OrchestratorPhase.CONFIRM_DIALOG_OPEN)

    def _open_confirmation(self, request: TransitionRequest):
        if self.resolver is not None:
            self.field_values.update(self.resolver.known_values)
        self.resolver = None
        self.confirmation = ConfirmationGate(request, commit=self._commit, on_cancel=self._reset)
        self._set_phase(OrchestratorPhase.CONFIRM_DIALOG_OPEN)

    def _open_resolver(self, request: TransitionRequest, check: PrerequisiteCheck):
        self.confirmation = None
        self.resolver = ViolationResolver(
            self.api,
            context=check.context,
            entity_type=self.entity_type,
            entity_id=self.entity_id,
            violations=check.violations,
            current_values=self.field_values,
            on_resolved=lambda: self._on_resolved(request),
        )
        self._set_phase(OrchestratorPhase.PREREQUISITE_MODAL_OPEN)

    def _on_resolved(self, request: TransitionRequest):
        if self._is_stale(request):
            return
        # Re-confirm rather than re-commit: the entity may have changed
        self.last_failure = None
        self._open_confirmation(request)

    def _is_stale(self, request: TransitionRequest) -> bool:
        stale = self.request is None or self.request.id != request.id
        if stale:
            logger.debug("Discarding result for stale transition %s", request.id)
        return stale

    def _fail_unexpected(self):
        logger.exception("Unexpected error during transition of %s", self.entity_id)
        self.last_failure = TransitionFailure.UNEXPECTED
        self._reset()
        self.error = GENERIC_ERROR

    def _reset(self):
        self.request = None
        self.resolver = None
        self.confirmation = None
        self._set_phase(OrchestratorPhase.IDLE)

    def _set_phase(self, phase: OrchestratorPhase):
        if phase != self.phase:
            logger.debug("%s: %s → %s", self.entity_id, self.phase.value, phase.value)
        self.phase = phase
