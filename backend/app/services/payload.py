from __future__ import annotations

from typing import Any, Iterable

from app.models.workflow import RecipientType, TemplateCompletionStatus, UserType
from app.schemas.workflow import (
    DocumentTemplateEntry,
    GroupedRecipient,
    SessionContext,
    WorkflowResponsePayload,
    WorkflowUser,
)
from app.services.recipients import is_sender_role
from app.services.template_resolver import active_references
from app.utils.envelope import extract_id, first_of


def build_document_templates(references: list[dict[str, Any]]) -> list[DocumentTemplateEntry]:
    return [
        DocumentTemplateEntry(
            template_id=template_id,
            template_response_id=extract_id(reference.get("template_response_id")),
            document_order=first_of(reference.get("document_order"), default=0),
            template_completion_status=first_of(
                reference.get("template_completion_status"),
                default=TemplateCompletionStatus.TO_START.value,
            ),
            is_settings_updated=first_of(reference.get("is_settings_updated"), default=False),
        )
        for reference, template_id in active_references(references)
    ]


def build_workflow_users(recipients: Iterable[GroupedRecipient]) -> list[WorkflowUser]:
    users: list[WorkflowUser] = []
    for recipient in recipients:
        if is_sender_role(recipient):
            continue
        templates = [entry.model_copy() for entry in recipient.templates if entry.template_id is not None]
        if not templates:
            # no template left to attach the recipient to
            continue
        full_name = f"{recipient.first_name or ''} {recipient.last_name or ''}".strip()
        users.append(
            WorkflowUser(
                email=recipient.email,
                first_name=recipient.first_name,
                last_name=recipient.last_name,
                phone=recipient.phone,
                address=recipient.address,
                title=recipient.title,
                company_name=recipient.company_name,
                role=recipient.role,
                templates=templates,
                value=first_of(recipient.value, default=f"RECEIVER_{len(users) + 1}"),
                type=first_of(recipient.type, default=RecipientType.RECEIVER.value),
                user_type=first_of(recipient.user_type, default=UserType.SIGNER.value),
                contact_id=first_of(recipient.selected_contact_id, recipient.contact_id),
                full_name=full_name,
            )
        )
    return users


def assemble_payload(
    context: SessionContext,
    references: list[dict[str, Any]],
    recipients: Iterable[GroupedRecipient],
    *,
    enforce_signature_order: bool = False,
) -> WorkflowResponsePayload:
    """Build the create-response payload from the reference list and the recipient aggregates.

    Pure: the same inputs always give an identical payload.
    """
    users = build_workflow_users(recipients)
    return WorkflowResponsePayload(
        company_id=context.company_id,
        document_templates=build_document_templates(references),
        workflow_users=users,
        primary_user=users[0] if users else None,
        enforce_signature_order=bool(enforce_signature_order),
    )
