"""
Customer Lifecycle States
Every customer is in exactly ONE of these states at any time
"""

from enum import Enum


class LifecycleState(str, Enum):
    # Pre-engagement
    PROSPECT = "PROSPECT"          # Known, not yet engaged
    ONBOARDING = "ONBOARDING"      # Intake in progress

    # Engaged
    ACTIVE = "ACTIVE"              # Billable relationship
    DORMANT = "DORMANT"            # No recent activity

    # Exit
    OFFBOARDING = "OFFBOARDING"    # Winding down
    OFFBOARDED = "OFFBOARDED"      # Relationship ended


# Targets that leave the active relationship. Menus put them last, behind a separator.
DESTRUCTIVE_STATES = frozenset({
    LifecycleState.OFFBOARDING,
    LifecycleState.OFFBOARDED,
})


# current_state → allowed targets, in display order
TRANSITIONS = {
    LifecycleState.PROSPECT: (
        LifecycleState.ONBOARDING,
    ),
    LifecycleState.ONBOARDING: (
        LifecycleState.ACTIVE,
        LifecycleState.OFFBOARDING,
    ),
    LifecycleState.ACTIVE: (
        LifecycleState.DORMANT,
        LifecycleState.OFFBOARDING,
        LifecycleState.OFFBOARDED,
    ),
    LifecycleState.DORMANT: (
        LifecycleState.ACTIVE,
        LifecycleState.OFFBOARDING,
    ),
    LifecycleState.OFFBOARDING: (
        LifecycleState.OFFBOARDED,
    ),
    LifecycleState.OFFBOARDED: (
        LifecycleState.ACTIVE,
    ),
}


# Menu label for moving INTO a state
ACTION_LABELS = {
    LifecycleState.PROSPECT: "Revert to Prospect",
    LifecycleState.ONBOARDING: "Start Onboarding",
    LifecycleState.ACTIVE: "Activate",
    LifecycleState.DORMANT: "Mark as Dormant",
    LifecycleState.OFFBOARDING: "Begin Offboarding",
    LifecycleState.OFFBOARDED: "Mark as Offboarded",
}


# Reactivating an offboarded customer must be explained
NOTES_REQUIRED = frozenset({
    (LifecycleState.OFFBOARDED, LifecycleState.ACTIVE),
})
