from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from app.core.config import settings
from app.schemas.workflow import SessionContext


class UpstreamApiError(RuntimeError):
    """Raised when the upstream e-signature API is unreachable or answers with an error."""

    def __init__(
        self,
        message: str,
        *,
        details: Optional[Dict[str, Any]] = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.details = details or {}
        self.status_code = status_code


class SignApiClient:
    """Async HTTP client for the upstream workflow, template and contact endpoints."""

    def __init__(
        self,
        base_url: str | None = None,
        *,
        access_token: str | None = None,
        timeout_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = (base_url or settings.resolved_upstream_url() or "").rstrip("/")
        if not self._base_url:
            raise UpstreamApiError("Upstream API base URL is not configured.")
        headers = {"Accept": "application/json"}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=headers,
            timeout=timeout_seconds or settings.upstream_timeout_seconds or 10.0,
            transport=transport,
        )

    @classmethod
    def for_context(cls, context: SessionContext, **kwargs: Any) -> "SignApiClient":
        return cls(access_token=context.access_token, **kwargs)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "SignApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> Any:
        if params:
            params = {key: value for key, value in params.items() if value is not None}
        try:
            response = await self._client.request(method, path, params=params or None, json=json)
        except httpx.TimeoutException as exc:
            raise UpstreamApiError(f"Upstream request timed out: {method} {path}") from exc
        except httpx.RequestError as exc:
            raise UpstreamApiError(f"Could not reach upstream API: {exc}") from exc

        if response.status_code >= 400:
            try:
                payload = response.json()
            except ValueError:
                payload = {"error": response.text}
            if not isinstance(payload, dict):
                payload = {"error": payload}
            message = str(
                payload.get("message")
                or payload.get("error")
                or payload.get("detail")
                or f"Upstream API answered {response.status_code}."
            )
            raise UpstreamApiError(message, details=payload, status_code=response.status_code)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamApiError(
                "Upstream API returned a non-JSON body.",
                details={"raw": response.text[:200]},
                status_code=response.status_code,
            ) from exc

    # Workflow store -------------------------------------------------------
    async def get_workflow(self, workflow_id: str) -> Any:
        return await self._request("GET", f"/api/workflows/{workflow_id}")

    # Template store -------------------------------------------------------
    async def get_template(self, template_id: str, company_id: str) -> Any:
        return await self._request(
            "GET",
            f"/api/documents-templates/{template_id}",
            params={"company_id": company_id},
        )

    # Contact store --------------------------------------------------------
    async def list_contacts(self, company_id: str, contact_type: str | None = None) -> list[dict[str, Any]]:
        raw = await self._request(
            "GET",
            "/api/contacts/v2",
            params={"company_id": company_id, "contact_type": contact_type},
        )
        for candidate in (raw, (raw or {}).get("data") if isinstance(raw, dict) else None):
            if isinstance(candidate, list):
                return [item for item in candidate if isinstance(item, dict)]
            if isinstance(candidate, dict) and isinstance(candidate.get("data"), list):
                return [item for item in candidate["data"] if isinstance(item, dict)]
        return []

    # Workflow response service -------------------------------------------
    async def create_response(self, workflow_id: str, payload: dict[str, Any]) -> Any:
        return await self._request("POST", f"/api/workflows/{workflow_id}/responses", json=payload)

    async def send_response(self, workflow_id: str, response_id: str) -> Any:
        return await self._request("POST", f"/api/workflows/{workflow_id}/responses/{response_id}/send")
