"""
Violation Resolver
==================
Shows unmet prerequisites, lets the user fill field-shaped ones inline,
saves the edits in one batch and re-runs the same context check.

    edit fields → resolve() → save dirty fields → re-check
                                   │                 │
                         failed: show error    passed: on_resolved()
                         (no re-check)         failed: show new list
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from lifecycle_gate.core.errors import BackendUnavailableError
from lifecycle_gate.core.prerequisites import (
    FieldViolation,
    PrerequisiteCheck,
    PrerequisiteContext,
    StructuralViolation,
)


logger = logging.getLogger(__name__)

GENERIC_SAVE_ERROR = "Failed to save field values"
GENERIC_UNEXPECTED_ERROR = "An unexpected error occurred. Please try again."
UNGROUPED = "Other"


class ResolveOutcome(str, Enum):
    RESOLVED = "RESOLVED"                      # re-check passed
    VALIDATION_FAILED = "VALIDATION_FAILED"    # re-check still failing
    PERSISTENCE_FAILED = "PERSISTENCE_FAILED"  # save rejected, nothing re-checked
    UNEXPECTED = "UNEXPECTED"


@dataclass(frozen=True)
class FieldEditor:
    slug: str
    label: str
    value: Any
    group_name: Optional[str] = None
    resolution: Optional[str] = None


class ViolationResolver:

    def __init__(self, api, context: PrerequisiteContext, entity_type: str, entity_id: str,
                 violations, current_values: dict = None,
                 on_resolved: Callable[[], None] = None):
        self.api = api
        self.context = PrerequisiteContext(context)
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.violations = list(violations)
        self.on_resolved = on_resolved

        self.is_open = True
        self.is_submitting = False
        self.error: Optional[str] = None
        self.last_outcome: Optional[ResolveOutcome] = None

        self._values = dict(current_values or {})
        self._dirty = set()
        self._resolved_fired = False

    # ── What to render ────────────────────────────────────────────────────────

    @property
    def field_violations(self) -> list:
        return [v for v in self.violations if isinstance(v, FieldViolation)]

    @property
    def structural_violations(self) -> list:
        return [v for v in self.violations if isinstance(v, StructuralViolation)]

    @property
    def editors(self) -> list:
        """One inline editor per field-shaped violation, seeded with the known value."""
        editors = []
        seen = set()
        for violation in self.field_violations:
            if violation.field_slug in seen:
                continue
            seen.add(violation.field_slug)
            editors.append(FieldEditor(
                slug=violation.field_slug,
                label=violation.message,
                value=self._values.get(violation.field_slug),
                group_name=violation.group_name,
                resolution=violation.resolution,
            ))
        return editors

    @property
    def hints(self) -> list:
        """Structural violations get their resolution text, nothing editable."""
        return [v.resolution or v.message for v in self.structural_violations]

    def grouped_violations(self) -> "OrderedDict[str, list]":
        groups = OrderedDict()
        for violation in self.violations:
            groups.setdefault(violation.group_name or UNGROUPED, []).append(violation)
        return groups

    # ── Editing ───────────────────────────────────────────────────────────────

    def value_for(self, slug: str):
        return self._values.get(slug)

    def set_field_value(self, slug: str, value):
        if slug not in {v.field_slug for v in self.field_violations}:
            raise KeyError(f"No editable violation for field '{slug}'")
        self._values[slug] = value
        self._dirty.add(slug)

    @property
    def known_values(self) -> dict:
        return dict(self._values)

    @property
    def dirty_values(self) -> dict:
        return {slug: self._values.get(slug) for slug in sorted(self._dirty)}

    # ── Resolve ───────────────────────────────────────────────────────────────

    async def resolve(self) -> Optional[ResolveOutcome]:
        if self.is_submitting or not self.is_open:
            return None

        self.is_submitting = True
        self.error = None
        try:
            outcome = await self._resolve()
        except Exception:
            logger.exception("Resolving %s prerequisites for %s failed", self.context.value, self.entity_id)
            self.error = GENERIC_UNEXPECTED_ERROR
            outcome = ResolveOutcome.UNEXPECTED
        finally:
            self.is_submitting = False

        self.last_outcome = outcome
        if outcome == ResolveOutcome.RESOLVED:
            self._fire_resolved()
        return outcome

    async def _resolve(self) -> ResolveOutcome:
        updates = self.dirty_values

        # Nothing edited: no save, straight to the re-check
        if updates:
            try:
                saved = await self.api.update_entity_fields(self.entity_type, self.entity_id, updates)
            except BackendUnavailableError as e:
                logger.warning("Saving fields for %s failed: %s", self.entity_id, e)
                self.error = GENERIC_SAVE_ERROR
                return ResolveOutcome.PERSISTENCE_FAILED

            if not saved.success:
                self.error = saved.error or GENERIC_SAVE_ERROR
                return ResolveOutcome.PERSISTENCE_FAILED
            self._dirty.clear()

        check = await self.api.check_prerequisites(self.context, self.entity_type, self.entity_id)
        return self.apply_check(check)

    def apply_check(self, check: PrerequisiteCheck) -> ResolveOutcome:
        """Replace (never merge) the displayed list with ``check``'s violations."""
        if check.passed:
            self.violations = []
            return ResolveOutcome.RESOLVED

        self.violations = list(check.violations)
        still_editable = {v.field_slug for v in self.field_violations}
        self._dirty &= still_editable
        return ResolveOutcome.VALIDATION_FAILED

    def _fire_resolved(self):
        self.is_open = False
        if self._resolved_fired:
            return
        self._resolved_fired = True
        if self.on_resolved is not None:
            self.on_resolved()

    def close(self):
        self.is_open = False
