"""
Confirmation Gate
=================
Last human step before a transition is committed.
"""

import logging
from typing import Awaitable, Callable, Optional

from lifecycle_gate.client.api_client import CommitResult


logger = logging.getLogger(__name__)

GENERIC_COMMIT_ERROR = "Failed to change lifecycle status. Please try again."


class ConfirmationGate:
    """
    Confirm / cancel dialog for one TransitionRequest.

    ``commit`` is called with the request and must return a CommitResult.
    While it runs the confirm action is disabled, so a second confirm
    is ignored instead of submitting twice.
    """

    def __init__(self, request, commit: Callable[..., Awaitable[CommitResult]],
                 on_cancel: Callable[[], None] = None):
        self.request = request
        self._commit = commit
        self._on_cancel = on_cancel
        self.is_open = True
        self.is_submitting = False
        self.error: Optional[str] = None
        self.notes: str = request.notes or ""

    @property
    def notes_required(self) -> bool:
        return self.request.notes_required

    @property
    def confirm_disabled(self) -> bool:
        if self.is_submitting or not self.is_open:
            return True
        return self.notes_required and not self.notes.strip()

    def set_notes(self, notes: str):
        self.notes = notes or ""

    async def confirm(self) -> Optional[CommitResult]:
        """Commit and report the result upward. None if the action was disabled."""
        if self.confirm_disabled:
            logger.debug("Confirm ignored for %s (disabled)", self.request.id)
            return None

        self.is_submitting = True
        self.error = None
        self.request.notes = self.notes.strip() or None
        try:
            result = await self._commit(self.request)
        finally:
            self.is_submitting = False

        if result.success or result.blocked_by_prerequisites:
            self.is_open = False
        else:
            self.error = result.error or GENERIC_COMMIT_ERROR
        return result

    def cancel(self):
        """Discard the request. No side effects."""
        if not self.is_open:
            return
        self.is_open = False
        if self._on_cancel is not None:
            self._on_cancel()
