"""
Authority Errors
================
Raised by the services, turned into HTTP responses in main.py
"""


class ResourceNotFoundError(Exception):
    def __init__(self, resource: str, resource_id):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} {resource_id} not found")


class InvalidStateError(Exception):
    """The requested change conflicts with the entity's current state (409)."""

    def __init__(self, title: str, detail: str):
        self.title = title
        self.detail = detail
        super().__init__(f"{title}: {detail}")


class FieldValidationError(Exception):
    """A submitted custom field value is unknown or malformed (400)."""


class UnsupportedEntityTypeError(FieldValidationError):
    pass


class PrerequisitesNotMetError(Exception):
    """A gated transition was attempted with unmet prerequisites (422)."""

    def __init__(self, check):
        self.check = check
        missing = len(check.field_violations)
        structural = len(check.structural_violations)
        parts = []
        if missing:
            parts.append(f"{missing} required field(s) missing")
        if structural:
            parts.append(f"{structural} structural requirement(s) unmet")
        self.detail = (
            f"{check.context.display_label} blocked: " + ", ".join(parts)
        )
        super().__init__(self.detail)
