from __future__ import annotations

from typing import Any, Protocol


class WorkflowStore(Protocol):
    async def get_workflow(self, workflow_id: str) -> Any:
        ...


class TemplateStore(Protocol):
    async def get_template(self, template_id: str, company_id: str) -> Any:  # envelope shape not guaranteed
        ...


class ContactStore(Protocol):
    async def list_contacts(self, company_id: str, contact_type: str | None = None) -> list[dict[str, Any]]:
        ...


class WorkflowResponseService(Protocol):
    async def create_response(self, workflow_id: str, payload: dict[str, Any]) -> Any:
        ...

    async def send_response(self, workflow_id: str, response_id: str) -> Any:
        ...
