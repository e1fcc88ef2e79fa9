"""
Prerequisite Checks
===================
A check runs in a CONTEXT (why are we checking?) against one entity
and yields zero or more violations.

Violations come in two shapes:
  FieldViolation      - a named data field is missing/invalid, fixable inline
  StructuralViolation - needs some other action (e.g. add a contact)
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union


class PrerequisiteContext(str, Enum):
    LIFECYCLE_ACTIVATION = "LIFECYCLE_ACTIVATION"
    INVOICE_GENERATION = "INVOICE_GENERATION"
    PROPOSAL_SEND = "PROPOSAL_SEND"
    DOCUMENT_GENERATION = "DOCUMENT_GENERATION"
    PROJECT_CREATION = "PROJECT_CREATION"

    @property
    def display_label(self) -> str:
        return CONTEXT_LABELS[self]


CONTEXT_LABELS = {
    PrerequisiteContext.LIFECYCLE_ACTIVATION: "Customer Activation",
    PrerequisiteContext.INVOICE_GENERATION: "Invoice Generation",
    PrerequisiteContext.PROPOSAL_SEND: "Proposal Sending",
    PrerequisiteContext.DOCUMENT_GENERATION: "Document Generation",
    PrerequisiteContext.PROJECT_CREATION: "Project Creation",
}


# Violation codes issued by the authority
MISSING_FIELD = "MISSING_FIELD"
STRUCTURAL = "STRUCTURAL"


@dataclass(frozen=True)
class FieldViolation:
    """Resolvable by editing the field named by ``field_slug``."""
    code: str
    message: str
    entity_type: str
    entity_id: str
    field_slug: str
    group_name: Optional[str] = None
    resolution: Optional[str] = None


@dataclass(frozen=True)
class StructuralViolation:
    """Needs an out-of-band action; only the resolution hint is shown."""
    code: str
    message: str
    entity_type: str
    entity_id: str
    group_name: Optional[str] = None
    resolution: Optional[str] = None


PrerequisiteViolation = Union[FieldViolation, StructuralViolation]


def is_field_shaped(violation: PrerequisiteViolation) -> bool:
    return isinstance(violation, FieldViolation)


@dataclass(frozen=True)
class PrerequisiteCheck:
    passed: bool
    context: PrerequisiteContext
    violations: tuple = field(default_factory=tuple)

    def __post_init__(self):
        # Accept any iterable, store a tuple so checks stay hashable and comparable
        object.__setattr__(self, "violations", tuple(self.violations))
        if self.passed != (len(self.violations) == 0):
            raise ValueError(
                f"Inconsistent check for {self.context.value}: passed={self.passed} "
                f"with {len(self.violations)} violation(s)"
            )

    @classmethod
    def ok(cls, context: PrerequisiteContext) -> "PrerequisiteCheck":
        return cls(passed=True, context=context)

    @classmethod
    def from_violations(cls, context: PrerequisiteContext, violations) -> "PrerequisiteCheck":
        violations = tuple(violations)
        return cls(passed=not violations, context=context, violations=violations)

    @property
    def field_violations(self) -> list:
        return [v for v in self.violations if isinstance(v, FieldViolation)]

    @property
    def structural_violations(self) -> list:
        return [v for v in self.violations if isinstance(v, StructuralViolation)]
