"""Lifecycle API HTTP Client.

The engine talks to the authority only through this client.

Contract:
- All methods are async (use httpx.AsyncClient)
- Transport failures and 5xx raise BackendUnavailableError
- check_prerequisites raises BackendRequestError on other non-2xx answers
- update_entity_fields / commit_transition report rejections as result objects
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from lifecycle_gate.config import get_settings
from lifecycle_gate.core.errors import BackendRequestError, BackendUnavailableError
from lifecycle_gate.core.lifecycle_states import LifecycleState
from lifecycle_gate.core.prerequisites import PrerequisiteCheck, PrerequisiteContext
from lifecycle_gate.schemas import PrerequisiteCheckSchema, PrerequisiteRejection


logger = logging.getLogger(__name__)

# entity type → URL segment
ENTITY_PATHS = {
    "CUSTOMER": "customers",
    "PROJECT": "projects",
    "TASK": "tasks",
}


@dataclass(frozen=True)
class FieldUpdateResult:
    success: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class CommitResult:
    success: bool
    error: Optional[str] = None
    prerequisite_check: Optional[PrerequisiteCheck] = None
    lifecycle_status: Optional[LifecycleState] = None

    @property
    def blocked_by_prerequisites(self) -> bool:
        """The recovery signal: rejected with its own failing check."""
        return (
            not self.success
            and self.prerequisite_check is not None
            and not self.prerequisite_check.passed
        )


def _error_detail(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        detail = body.get("detail")
        if isinstance(detail, str) and detail:
            return detail
    return None


class LifecycleApiClient:
    """HTTP client for the lifecycle authority."""

    def __init__(self, base_url: str = None, timeout: float = None,
                 http_client: httpx.AsyncClient = None, actor: str = None):
        settings = get_settings()
        self.base_url = (base_url or settings.backend_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.request_timeout
        # Sent as X-Actor on commits, recorded as lifecycle_status_changed_by
        self.actor = actor
        self._client = http_client
        self._owns_client = http_client is None

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout)
        return self._client

    async def close(self):
        """Close the HTTP client if we created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    async def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = await self._http().request(method, path, **kwargs)
        except httpx.RequestError as e:
            raise BackendUnavailableError(f"Request failed: {e}") from e
        if response.status_code >= 500:
            raise BackendUnavailableError(
                f"Backend error {response.status_code}: {_error_detail(response) or response.reason_phrase}"
            )
        return response

    # -----------------------------------------------------------------
    # Prerequisites
    # -----------------------------------------------------------------

    async def check_prerequisites(self, context: PrerequisiteContext, entity_type: str,
                                  entity_id: str) -> PrerequisiteCheck:
        """GET /api/prerequisites/check - read-only, safe to repeat."""
        response = await self._send(
            "GET",
            "/api/prerequisites/check",
            params={
                "context": PrerequisiteContext(context).value,
                "entityType": entity_type,
                "entityId": str(entity_id),
            },
        )
        if response.status_code != 200:
            raise BackendRequestError(
                response.status_code, _error_detail(response) or response.reason_phrase
            )
        return PrerequisiteCheckSchema.model_validate(response.json()).to_domain()

    # -----------------------------------------------------------------
    # Entity fields
    # -----------------------------------------------------------------

    async def update_entity_fields(self, entity_type: str, entity_id: str,
                                   field_values: Dict[str, Any]) -> FieldUpdateResult:
        """PUT /api/{entities}/{id}/custom-fields - one batched write."""
        segment = ENTITY_PATHS.get(entity_type)
        if segment is None:
            raise ValueError(f"Unsupported entity type: {entity_type}")

        response = await self._send(
            "PUT",
            f"/api/{segment}/{entity_id}/custom-fields",
            json={"customFields": dict(field_values)},
        )
        if response.is_success:
            return FieldUpdateResult(success=True)
        return FieldUpdateResult(success=False, error=_error_detail(response))

    async def get_customer(self, entity_id: str) -> Dict[str, Any]:
        """GET /api/customers/{id}"""
        response = await self._send("GET", f"/api/customers/{entity_id}")
        if response.status_code != 200:
            raise BackendRequestError(
                response.status_code, _error_detail(response) or response.reason_phrase
            )
        return response.json()

    # -----------------------------------------------------------------
    # Transitions
    # -----------------------------------------------------------------

    async def commit_transition(self, entity_id: str, target_state: LifecycleState,
                                notes: str = None) -> CommitResult:
        """POST /api/customers/{id}/transition"""
        payload = {"targetStatus": LifecycleState(target_state).value}
        if notes:
            payload["notes"] = notes

        headers = {"X-Actor": self.actor} if self.actor else None
        response = await self._send(
            "POST", f"/api/customers/{entity_id}/transition", json=payload, headers=headers
        )

        if response.is_success:
            # Committed either way; without a readable body assume the requested target
            status = target_state
            try:
                body = response.json()
            except ValueError:
                logger.warning("Commit of %s for %s returned an unreadable body",
                               LifecycleState(target_state).value, entity_id)
            else:
                if isinstance(body, dict) and body.get("lifecycleStatus"):
                    status = body["lifecycleStatus"]
            return CommitResult(success=True, lifecycle_status=LifecycleState(status))

        if response.status_code == 422:
            try:
                rejection = PrerequisiteRejection.model_validate(response.json())
            except (ValueError, ValidationError):
                # A 422 without a violation list is an ordinary rejection
                logger.debug("422 from commit without prerequisite payload")
            else:
                return CommitResult(
                    success=False,
                    error=rejection.detail,
                    prerequisite_check=rejection.to_check(),
                )

        return CommitResult(success=False, error=_error_detail(response))
