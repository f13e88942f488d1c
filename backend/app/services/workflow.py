from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from pydantic import ValidationError

from app.schemas.contact import ContactRead
from app.schemas.workflow import (
    DocumentTemplateEntry,
    RecipientBindingIn,
    ResolvedTemplate,
    SessionContext,
    SubmissionResult,
    Workflow,
    WorkflowConfigurationRead,
    WorkflowResponsePayload,
)
from app.services.audit import AuditService
from app.services.contact import ContactService
from app.services.payload import assemble_payload, build_document_templates
from app.services.recipients import RecipientBindings, flatten_recipients, group_recipients
from app.services.sign_api import UpstreamApiError
from app.services.stores import ContactStore, TemplateStore, WorkflowResponseService, WorkflowStore
from app.services.submission import SubmissionLedger, SubmissionOrchestrator
from app.services.template_resolver import TemplateResolver, template_references
from app.utils.envelope import extract_id, unwrap_envelope

logger = logging.getLogger("signflow.workflow")


class WorkflowNotFoundError(LookupError):
    def __init__(self, workflow_id: str, reason: str = "not found") -> None:
        super().__init__(f"Workflow {workflow_id}: {reason}")
        self.workflow_id = workflow_id


@dataclass
class WorkflowConfiguration:
    workflow_id: str
    workflow: Workflow
    references: list[dict[str, Any]]
    resolved: list[ResolvedTemplate]
    bindings: RecipientBindings
    enforce_signature_order: bool = False
    document_templates: list[DocumentTemplateEntry] = field(default_factory=list)

    def build_payload(self, context: SessionContext) -> WorkflowResponsePayload:
        return assemble_payload(
            context,
            self.references,
            self.bindings.recipients,
            enforce_signature_order=self.enforce_signature_order,
        )

    def to_read(self) -> WorkflowConfigurationRead:
        return WorkflowConfigurationRead(
            workflow_id=self.workflow_id,
            name=self.workflow.name,
            enforce_signature_order=self.enforce_signature_order,
            document_templates=self.document_templates,
            recipients=self.bindings.recipients,
            ready=self.bindings.is_ready(),
            incomplete_roles=self.bindings.incomplete_roles(),
        )


class WorkflowConfigurationService:
    """Loads a workflow's recipient configuration and submits it."""

    def __init__(
        self,
        workflow_store: WorkflowStore,
        template_store: TemplateStore,
        contact_store: ContactStore,
        response_service: WorkflowResponseService,
        *,
        ledger: SubmissionLedger | None = None,
        audit_service: AuditService | None = None,
    ) -> None:
        self.workflow_store = workflow_store
        self.resolver = TemplateResolver(template_store)
        self.contact_service = ContactService(contact_store)
        self.response_service = response_service
        self.ledger = ledger
        self.audit_service = audit_service

    @classmethod
    def from_client(cls, client: Any, **kwargs: Any) -> "WorkflowConfigurationService":
        return cls(client, client, client, client, **kwargs)

    async def _get_workflow(self, workflow_id: str) -> Workflow:
        try:
            raw = await self.workflow_store.get_workflow(workflow_id)
        except UpstreamApiError as exc:
            if exc.status_code == 404:
                raise WorkflowNotFoundError(workflow_id) from exc
            raise
        record = unwrap_envelope(raw)
        if record is None:
            raise WorkflowNotFoundError(workflow_id, "response holds no workflow object")
        try:
            return Workflow.model_validate(record)
        except ValidationError as exc:
            raise WorkflowNotFoundError(workflow_id, "malformed workflow record") from exc

    async def load(self, workflow_id: str, context: SessionContext) -> WorkflowConfiguration:
        workflow = await self._get_workflow(workflow_id)
        references = template_references(workflow)
        resolved = await self.resolver.resolve(references, context)
        recipients = group_recipients(flatten_recipients(resolved))
        logger.info(
            "Workflow %s: %d/%d templates resolved, %d recipients",
            workflow_id,
            len(resolved),
            len(references),
            len(recipients),
        )
        return WorkflowConfiguration(
            workflow_id=extract_id(workflow.id) or workflow_id,
            workflow=workflow,
            references=references,
            resolved=resolved,
            bindings=RecipientBindings(recipients),
            enforce_signature_order=workflow.enforce_signature_order,
            document_templates=build_document_templates(references),
        )

    async def apply_bindings(
        self,
        configuration: WorkflowConfiguration,
        bindings: Iterable[RecipientBindingIn],
        context: SessionContext,
    ) -> None:
        requested = list(bindings)
        if not requested:
            return
        contacts = await self.contact_service.index(context)
        for binding in requested:
            contact = await self.contact_service.find(binding.contact_id, context, contacts)
            configuration.bindings.bind(binding.role_key, binding.contact_id, contact)

    async def contact_options(self, workflow_id: str, role_key: str, context: SessionContext) -> list[ContactRead]:
        """Contacts selectable for one role of the workflow."""
        configuration = await self.load(workflow_id, context)
        recipient = configuration.bindings.find(role_key)
        return await self.contact_service.options_for(recipient, context)

    async def submit(
        self,
        workflow_id: str,
        context: SessionContext,
        bindings: Iterable[RecipientBindingIn],
        *,
        enforce_signature_order: bool | None = None,
    ) -> SubmissionResult:
        configuration = await self.load(workflow_id, context)
        await self.apply_bindings(configuration, bindings, context)
        if enforce_signature_order is not None:
            configuration.enforce_signature_order = enforce_signature_order

        orchestrator = SubmissionOrchestrator(
            self.response_service,
            ledger=self.ledger,
            audit_service=self.audit_service,
        )
        return await orchestrator.submit(
            configuration.workflow_id,
            context,
            configuration.bindings,
            configuration.build_payload(context),
        )
