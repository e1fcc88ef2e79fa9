"""
Transition graph tests: legal moves, gating registry, menu layout.
"""
import pytest

from lifecycle_gate.core.lifecycle_fsm import (
    GATED_TRANSITIONS,
    build_transition_menu,
    gating_context,
    is_valid_transition,
    requires_notes,
    requires_prerequisite_check,
    valid_targets,
    validate_graph,
)
from lifecycle_gate.core.lifecycle_states import DESTRUCTIVE_STATES, TRANSITIONS, LifecycleState
from lifecycle_gate.core.prerequisites import PrerequisiteContext


S = LifecycleState


class TestTransitionGraph:

    def test_every_state_has_an_entry(self):
        assert set(TRANSITIONS) == set(LifecycleState)

    def test_targets_are_ordered(self):
        assert valid_targets(S.ACTIVE) == (S.DORMANT, S.OFFBOARDING, S.OFFBOARDED)
        assert valid_targets(S.ONBOARDING) == (S.ACTIVE, S.OFFBOARDING)

    def test_accepts_plain_strings(self):
        assert valid_targets("PROSPECT") == (S.ONBOARDING,)
        assert is_valid_transition("ONBOARDING", "ACTIVE")

    @pytest.mark.parametrize("source,target", [
        (S.PROSPECT, S.ACTIVE),
        (S.PROSPECT, S.DORMANT),
        (S.OFFBOARDED, S.PROSPECT),
        (S.ACTIVE, S.ACTIVE),
    ])
    def test_illegal_moves(self, source, target):
        assert not is_valid_transition(source, target)

    def test_state_missing_from_graph_builds_empty_menu(self):
        assert build_transition_menu(S.PROSPECT, transitions={}) == []

    def test_shipped_graph_is_well_ordered(self):
        validate_graph()

    def test_validate_graph_rejects_benign_after_destructive(self):
        bad = {S.ACTIVE: (S.OFFBOARDING, S.DORMANT)}
        with pytest.raises(ValueError, match="DORMANT"):
            validate_graph(transitions=bad)


class TestGating:

    def test_only_onboarding_to_active_is_gated(self):
        assert GATED_TRANSITIONS == {
            (S.ONBOARDING, S.ACTIVE): PrerequisiteContext.LIFECYCLE_ACTIVATION,
        }

    def test_gated_pair(self):
        assert requires_prerequisite_check(S.ONBOARDING, S.ACTIVE)
        assert gating_context(S.ONBOARDING, S.ACTIVE) == PrerequisiteContext.LIFECYCLE_ACTIVATION

    def test_valid_but_ungated_pairs(self):
        # Gating is independent of validity
        assert is_valid_transition(S.DORMANT, S.ACTIVE)
        assert not requires_prerequisite_check(S.DORMANT, S.ACTIVE)
        assert gating_context(S.ACTIVE, S.DORMANT) is None

    def test_reactivation_requires_notes(self):
        assert requires_notes(S.OFFBOARDED, S.ACTIVE)
        assert not requires_notes(S.DORMANT, S.ACTIVE)


class TestTransitionMenu:

    def test_no_exits_means_no_control(self):
        graph = {S.OFFBOARDED: ()}
        assert build_transition_menu(S.OFFBOARDED, transitions=graph) == []

    def test_separator_before_first_destructive_only_once(self):
        menu = build_transition_menu(S.ACTIVE)
        kinds = [e.kind for e in menu]
        assert kinds == ["transition", "separator", "transition", "transition"]
        assert menu[0].target == S.DORMANT
        assert menu[2].target == S.OFFBOARDING and menu[2].destructive
        assert menu[3].target == S.OFFBOARDED and menu[3].destructive

    def test_no_separator_when_destructive_is_first(self):
        menu = build_transition_menu(S.OFFBOARDING)
        assert [e.kind for e in menu] == ["transition"]
        assert menu[0].destructive

    def test_no_separator_without_destructive_targets(self):
        menu = build_transition_menu(S.PROSPECT)
        assert not any(e.is_separator for e in menu)

    def test_labels(self):
        menu = build_transition_menu(S.ONBOARDING)
        assert [e.label for e in menu if not e.is_separator] == ["Activate", "Begin Offboarding"]

    @pytest.mark.parametrize("state", list(LifecycleState))
    def test_separator_property_holds_for_every_state(self, state):
        targets = valid_targets(state)
        menu = build_transition_menu(state)
        separators = [i for i, e in enumerate(menu) if e.is_separator]
        destructive = [i for i, t in enumerate(targets) if t in DESTRUCTIVE_STATES]

        if destructive and destructive[0] > 0:
            assert len(separators) == 1
            # immediately before the first destructive entry
            assert menu[separators[0] + 1].target == targets[destructive[0]]
        else:
            assert separators == []

    def test_custom_graph_with_many_destructive_targets(self):
        graph = {S.ACTIVE: (S.DORMANT, S.ONBOARDING, S.OFFBOARDING, S.OFFBOARDED)}
        menu = build_transition_menu(S.ACTIVE, transitions=graph)
        assert sum(1 for e in menu if e.is_separator) == 1
        assert menu[2].is_separator
