"""
Orchestrator + real HTTP client + reference authority, all in-process.
"""
import pytest

from lifecycle_gate.client.api_client import LifecycleApiClient
from lifecycle_gate.core.errors import TransitionFailure
from lifecycle_gate.core.lifecycle_states import LifecycleState
from lifecycle_gate.gating.orchestrator import OrchestratorPhase, TransitionOrchestrator
from lifecycle_gate.gating.resolver import ResolveOutcome

from conftest import create_customer, create_required_fields


@pytest.mark.asyncio
async def test_activation_blocked_then_resolved_inline(http, api):
    await create_required_fields(http)
    customer_id = await create_customer(http, status="ONBOARDING")
    orchestrator = TransitionOrchestrator(api, entity_id=customer_id, current_state=LifecycleState.ONBOARDING)

    await orchestrator.request_transition(LifecycleState.ACTIVE)

    assert orchestrator.phase == OrchestratorPhase.PREREQUISITE_MODAL_OPEN
    assert [e.slug for e in orchestrator.resolver.editors] == ["tax_number", "industry"]

    # Bad dropdown value: the save is rejected and the backend text is shown
    orchestrator.resolver.set_field_value("tax_number", "9001")
    orchestrator.resolver.set_field_value("industry", "Mining")
    assert await orchestrator.resolve() == ResolveOutcome.PERSISTENCE_FAILED
    assert orchestrator.resolver.error == "Industry must be one of: Legal, Finance"

    orchestrator.resolver.set_field_value("industry", "Legal")
    assert await orchestrator.resolve() == ResolveOutcome.RESOLVED
    assert orchestrator.phase == OrchestratorPhase.CONFIRM_DIALOG_OPEN

    result = await orchestrator.confirm()

    assert result.success
    assert orchestrator.current_state == LifecycleState.ACTIVE
    stored = (await http.get(f"/api/customers/{customer_id}")).json()
    assert stored["lifecycleStatus"] == "ACTIVE"
    assert stored["customFields"] == {"tax_number": "9001", "industry": "Legal"}


@pytest.mark.asyncio
async def test_requirement_added_between_check_and_commit(http, api):
    customer_id = await create_customer(http, status="ONBOARDING")
    orchestrator = TransitionOrchestrator(api, entity_id=customer_id, current_state=LifecycleState.ONBOARDING)

    await orchestrator.request_transition(LifecycleState.ACTIVE)
    assert orchestrator.phase == OrchestratorPhase.CONFIRM_DIALOG_OPEN

    # Someone makes two fields mandatory while the dialog is open
    await create_required_fields(http)
    await orchestrator.confirm()

    assert orchestrator.phase == OrchestratorPhase.PREREQUISITE_MODAL_OPEN
    assert orchestrator.last_failure == TransitionFailure.COMMIT_REJECTED_BY_PREREQUISITES
    assert [v.field_slug for v in orchestrator.resolver.violations] == ["tax_number", "industry"]
    assert orchestrator.current_state == LifecycleState.ONBOARDING

    orchestrator.resolver.set_field_value("tax_number", "1")
    orchestrator.resolver.set_field_value("industry", "Finance")
    await orchestrator.resolve()
    await orchestrator.confirm()

    assert orchestrator.phase == OrchestratorPhase.IDLE
    assert orchestrator.current_state == LifecycleState.ACTIVE


@pytest.mark.asyncio
async def test_reactivation_needs_notes_end_to_end(http, api):
    customer_id = await create_customer(http, status="OFFBOARDED")
    orchestrator = TransitionOrchestrator(api, entity_id=customer_id, current_state=LifecycleState.OFFBOARDED)

    await orchestrator.request_transition(LifecycleState.ACTIVE)
    assert orchestrator.confirmation.confirm_disabled

    await orchestrator.confirm(notes="Renewed contract")

    events = (await http.get(f"/api/customers/{customer_id}/lifecycle")).json()
    assert events[-1]["payload"]["notes"] == "Renewed contract"
    assert orchestrator.current_state == LifecycleState.ACTIVE


@pytest.mark.asyncio
async def test_actor_recorded_on_commit(http):
    api = LifecycleApiClient(http_client=http, actor="ops@acme.com")
    customer_id = await create_customer(http, status="ACTIVE")
    orchestrator = TransitionOrchestrator(api, entity_id=customer_id, current_state=LifecycleState.ACTIVE)

    await orchestrator.request_transition(LifecycleState.DORMANT)
    await orchestrator.confirm()

    stored = (await http.get(f"/api/customers/{customer_id}")).json()
    assert stored["lifecycleStatus"] == "DORMANT"
    assert stored["lifecycleStatusChangedBy"] == "ops@acme.com"
