from __future__ import annotations

import asyncio
import uuid
from typing import Any

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel, create_engine

from app.api.deps import get_api_client, get_db
from app.db import base  # noqa: F401
from app.main import app
from app.schemas.workflow import SessionContext
from app.services.sign_api import UpstreamApiError


@pytest.fixture()
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture()
def db_engine(tmp_path):
    db_path = tmp_path / f"test_{uuid.uuid4().hex}.db"
    engine = create_engine(f"sqlite:///{db_path}", connect_args={"check_same_thread": False})
    SQLModel.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def db_session(db_engine) -> Session:
    with Session(db_engine) as session:
        yield session


def make_template(
    template_id: str,
    title: str,
    users: list[dict[str, Any]],
    *,
    status: str | None = "ACTIVE",
    is_active: bool | None = True,
) -> dict[str, Any]:
    return {
        "_id": template_id,
        "title": title,
        "status": status,
        "is_active": is_active,
        "document_users": users,
    }


def make_reference(template: dict[str, Any], **fields: Any) -> dict[str, Any]:
    reference = {
        "template_id": {key: value for key, value in template.items() if key != "document_users"},
        "document_order": fields.pop("document_order", 1),
        "template_completion_status": fields.pop("template_completion_status", "TO-START"),
        "is_settings_updated": fields.pop("is_settings_updated", False),
    }
    reference.update(fields)
    return reference


class FakeSignApi:
    """In-memory stand-in for every upstream store the core talks to."""

    def __init__(
        self,
        *,
        workflows: dict[str, Any] | None = None,
        templates: dict[str, Any] | None = None,
        contacts: list[dict[str, Any]] | None = None,
        delays: dict[str, float] | None = None,
    ) -> None:
        self.workflows = workflows or {}
        self.templates = templates or {}
        self.contacts = contacts or []
        self.delays = delays or {}
        self.create_results: list[Any] = []
        self.send_errors: list[Exception | None] = []
        self.template_calls: list[tuple[str, str]] = []
        self.created: list[tuple[str, dict[str, Any]]] = []
        self.sent: list[tuple[str, str]] = []

    async def get_workflow(self, workflow_id: str) -> Any:
        if workflow_id not in self.workflows:
            raise UpstreamApiError("Workflow not found", status_code=404)
        return self.workflows[workflow_id]

    async def get_template(self, template_id: str, company_id: str) -> Any:
        self.template_calls.append((template_id, company_id))
        if template_id in self.delays:
            await asyncio.sleep(self.delays[template_id])
        value = self.templates.get(template_id)
        if isinstance(value, Exception):
            raise value
        if value is None:
            raise UpstreamApiError("Template not found", status_code=404)
        return value

    async def list_contacts(self, company_id: str, contact_type: str | None = None) -> list[dict[str, Any]]:
        return [
            contact
            for contact in self.contacts
            if contact_type is None or contact.get("contact_type") == contact_type
        ]

    async def create_response(self, workflow_id: str, payload: dict[str, Any]) -> Any:
        self.created.append((workflow_id, payload))
        if self.create_results:
            result = self.create_results.pop(0)
        else:
            result = {"data": {"data": {"_id": f"resp-{len(self.created)}"}}}
        if isinstance(result, Exception):
            raise result
        return result

    async def send_response(self, workflow_id: str, response_id: str) -> Any:
        self.sent.append((workflow_id, response_id))
        if self.send_errors:
            error = self.send_errors.pop(0)
            if error is not None:
                raise error
        return {"success": True}


@pytest.fixture()
def context() -> SessionContext:
    return SessionContext(company_id="company-1", user_id="user-1", access_token="token")


@pytest.fixture()
def scenario_a() -> FakeSignApi:
    """Two templates sharing a Buyer; the first also declares the sender."""
    purchase = make_template(
        "tpl-1",
        "Purchase Agreement",
        [
            {"role": "Buyer", "contact_type_name": "Buyer", "contact_type": "ct-buyer", "user_type": "SIGNER"},
            {"role": "sender"},
        ],
    )
    disclosure = make_template(
        "tpl-2",
        "Disclosure",
        [
            {"role": "Buyer", "contact_type_name": "Buyer", "contact_type": "ct-buyer", "user_type": "VIEWER"},
            {"role": "Witness", "contact_type_name": "Witness", "contact_type": "ct-witness"},
        ],
    )
    workflow = {
        "data": {
            "_id": "wf-1",
            "name": "Closing",
            "company_id": "company-1",
            "enforce_signature_order": True,
            "document_templates": [
                make_reference(purchase, document_order=1),
                make_reference(disclosure, document_order=2, template_response_id="prev-resp"),
            ],
        }
    }
    contacts = [
        {
            "_id": "c-buyer",
            "email": "buyer@example.com",
            "first_name": "Ana",
            "last_name": "Souza",
            "phone": "555-0101",
            "contact_type": "ct-buyer",
        },
        {
            "_id": "c-witness",
            "email": "witness@example.com",
            "first_name": "Bruno",
            "last_name": "Lima",
            "contact_type": "ct-witness",
        },
    ]
    return FakeSignApi(
        workflows={"wf-1": workflow},
        templates={"tpl-1": {"data": purchase}, "tpl-2": {"data": {"data": disclosure}}},
        contacts=contacts,
    )


@pytest.fixture()
def client(db_engine, scenario_a: FakeSignApi) -> TestClient:
    def _get_db():
        with Session(db_engine) as session:
            yield session

    async def _get_api_client():
        yield scenario_a

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_api_client] = _get_api_client
    yield TestClient(app)
    app.dependency_overrides.pop(get_db, None)
    app.dependency_overrides.pop(get_api_client, None)


def api_headers(company_id: str = "company-1", token: str = "test-token") -> dict[str, str]:
    return {"Authorization": f"Bearer {token}", "X-Company-Id": company_id}
