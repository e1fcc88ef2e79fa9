"""
Customer Lifecycle Transition Graph
Which moves are legal, which are gated, and how the menu is laid out
"""

from dataclasses import dataclass
from typing import Optional

from lifecycle_gate.core.lifecycle_states import (
    ACTION_LABELS,
    DESTRUCTIVE_STATES,
    NOTES_REQUIRED,
    TRANSITIONS,
    LifecycleState,
)
from lifecycle_gate.core.prerequisites import PrerequisiteContext


# (current_state, target_state) → context that must pass before confirming.
# Independent of TRANSITIONS: not every legal move is gated.
GATED_TRANSITIONS = {
    (LifecycleState.ONBOARDING, LifecycleState.ACTIVE): PrerequisiteContext.LIFECYCLE_ACTIVATION,
}


def valid_targets(state: LifecycleState) -> tuple:
    """Ordered targets reachable from ``state``. Empty means no exits."""
    return TRANSITIONS.get(LifecycleState(state), ())


def is_valid_transition(source: LifecycleState, target: LifecycleState) -> bool:
    return LifecycleState(target) in valid_targets(source)


def gating_context(source: LifecycleState, target: LifecycleState) -> Optional[PrerequisiteContext]:
    return GATED_TRANSITIONS.get((LifecycleState(source), LifecycleState(target)))


def requires_prerequisite_check(source: LifecycleState, target: LifecycleState) -> bool:
    return gating_context(source, target) is not None


def requires_notes(source: LifecycleState, target: LifecycleState) -> bool:
    return (LifecycleState(source), LifecycleState(target)) in NOTES_REQUIRED


def is_destructive(state: LifecycleState) -> bool:
    return LifecycleState(state) in DESTRUCTIVE_STATES


@dataclass(frozen=True)
class MenuEntry:
    """One row of the transition menu: either a target or a separator."""
    kind: str  # "transition" | "separator"
    target: Optional[LifecycleState] = None
    label: str = ""
    destructive: bool = False

    @property
    def is_separator(self) -> bool:
        return self.kind == "separator"


SEPARATOR = MenuEntry(kind="separator")


def build_transition_menu(state: LifecycleState, transitions=None, destructive_states=None) -> list:
    """
    Lay out the menu for ``state``.

    No targets → empty list (render no control at all).
    A single separator goes right before the first destructive target,
    unless that target is the first entry.
    """
    transitions = TRANSITIONS if transitions is None else transitions
    destructive_states = DESTRUCTIVE_STATES if destructive_states is None else destructive_states

    menu = []
    separated = False
    for index, target in enumerate(transitions.get(LifecycleState(state), ())):
        destructive = target in destructive_states
        if destructive and not separated:
            if index > 0:
                menu.append(SEPARATOR)
            separated = True
        menu.append(MenuEntry(
            kind="transition",
            target=target,
            label=ACTION_LABELS.get(target, target.value.title()),
            destructive=destructive,
        ))
    return menu


def validate_graph(transitions=None, destructive_states=None) -> None:
    """Raise ValueError if any state lists a benign target after a destructive one."""
    transitions = TRANSITIONS if transitions is None else transitions
    destructive_states = DESTRUCTIVE_STATES if destructive_states is None else destructive_states

    for state, targets in transitions.items():
        seen_destructive = False
        for target in targets:
            if target in destructive_states:
                seen_destructive = True
            elif seen_destructive:
                raise ValueError(
                    f"{state.value}: non-destructive target {target.value} "
                    f"listed after a destructive one"
                )


validate_graph()


# Demo: print the menu for every state
if __name__ == "__main__":
    for state in LifecycleState:
        print(f"\n📍 {state.value}")
        menu = build_transition_menu(state)
        if not menu:
            print("   (no transitions)")
        for entry in menu:
            if entry.is_separator:
                print("   ────────────")
            else:
                gate = " 🔒" if requires_prerequisite_check(state, entry.target) else ""
                print(f"   {entry.label:20} → {entry.target.value}{gate}")
