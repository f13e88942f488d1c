from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Iterable
from uuid import uuid4

from app.models.workflow import RecipientType
from app.schemas.contact import ContactRead
from app.schemas.workflow import (
    CONTACT_FIELDS,
    FlatRecipient,
    GroupedRecipient,
    ResolvedTemplate,
    TemplateInvolvement,
)
from app.utils.envelope import extract_id, first_of

SENDER_ROLE = "sender"


class IncompleteBindingError(ValueError):
    """Submission attempted while non-sender roles still lack a contact."""

    def __init__(self, roles: list[str]) -> None:
        super().__init__(f"Recipients without a contact: {', '.join(roles)}")
        self.roles = roles


class UnknownRoleError(LookupError):
    def __init__(self, role_key: str) -> None:
        super().__init__(f"No recipient with role '{role_key}'")
        self.role_key = role_key


def _field(recipient: Any, name: str) -> Any:
    if isinstance(recipient, Mapping):
        return recipient.get(name)
    return getattr(recipient, name, None)


def role_label(recipient: Any) -> Any:
    """Best label for a recipient: contact type name, then role, then contact type."""
    label = first_of(
        _field(recipient, "contact_type_name"),
        _field(recipient, "role"),
        _field(recipient, "contact_type"),
    )
    if isinstance(label, Mapping):
        label = first_of(label.get("name"), extract_id(label))
    return label


def role_key(recipient: Any) -> str:
    label = role_label(recipient)
    return str(label).strip().lower() if label is not None else ""


def is_sender_role(recipient: Any) -> bool:
    """Single predicate for every sender check; senders are covered by the current user."""
    if _field(recipient, "is_sender") is True:
        return True
    kind = _field(recipient, "type")
    if isinstance(kind, str) and kind.strip().upper() == RecipientType.SENDER.value:
        return True
    role = _field(recipient, "role")
    if isinstance(role, str) and role.strip().lower() == SENDER_ROLE:
        return True
    return role_key(recipient) == SENDER_ROLE


def flatten_recipients(resolved: Iterable[ResolvedTemplate]) -> list[FlatRecipient]:
    flat: list[FlatRecipient] = []
    for item in resolved:
        template_id = item.template.id or item.template_id
        for definition in item.template.document_users:
            data = definition.model_dump()
            data.update(
                {
                    "_templateId": template_id,
                    "_templateName": item.template.title,
                    "_uiId": uuid4().hex[:8],
                }
            )
            flat.append(FlatRecipient.model_validate(data))
    return flat


def _involvement(recipient: FlatRecipient) -> TemplateInvolvement:
    return TemplateInvolvement(
        template_id=recipient.source_template_id,
        template_name=recipient.source_template_name,
        user_type=recipient.user_type,
    )


def _new_aggregate(recipient: FlatRecipient, key: str, sender: bool) -> GroupedRecipient:
    data = recipient.model_dump(exclude={"source_template_id", "source_template_name", "ui_id"})
    label = role_label(recipient)
    data.update(
        {
            "role_key": key,
            "role": str(label) if label is not None else None,
            "is_sender": sender,
            "selected_contact_id": None,
            "templates": [_involvement(recipient)],
            "involved_templates": recipient.source_template_name,
        }
    )
    return GroupedRecipient.model_validate(data)


def _merge_into(aggregate: GroupedRecipient, recipient: FlatRecipient) -> None:
    if not any(entry.template_id == recipient.source_template_id for entry in aggregate.templates):
        aggregate.templates.append(_involvement(recipient))

    name = recipient.source_template_name
    if not name:
        return
    names = aggregate.involved_templates.split(", ") if aggregate.involved_templates else []
    if name not in names:
        names.append(name)
        aggregate.involved_templates = ", ".join(names)


def group_recipients(flat: Iterable[FlatRecipient]) -> list[GroupedRecipient]:
    """Fold flat recipients into one aggregate per role key, in first-seen order.

    Display fields come from the first recipient seen for a key; later ones
    only extend ``templates`` and ``_involvedTemplates``. Sender definitions
    are grouped among themselves and never merged into a receiver aggregate.
    """
    grouped: list[GroupedRecipient] = []
    index: dict[tuple[str, bool], GroupedRecipient] = {}
    for recipient in flat:
        sender = is_sender_role(recipient)
        key = role_key(recipient)
        aggregate = index.get((key, sender))
        if aggregate is None:
            aggregate = _new_aggregate(recipient, key, sender)
            index[(key, sender)] = aggregate
            grouped.append(aggregate)
        else:
            _merge_into(aggregate, recipient)
    return grouped


class RecipientBindings:
    """Owns the grouped recipients and the contacts the user binds to them."""

    def __init__(self, recipients: list[GroupedRecipient]) -> None:
        self.recipients = recipients

    def find(self, key: str) -> GroupedRecipient:
        normalized = (key or "").strip().lower()
        for recipient in self.recipients:
            if recipient.role_key == normalized and not is_sender_role(recipient):
                return recipient
        raise UnknownRoleError(key)

    def bind(self, key: str, contact_id: str, contact: ContactRead | Mapping[str, Any]) -> GroupedRecipient:
        recipient = self.find(key)
        for name in CONTACT_FIELDS:
            setattr(recipient, name, _field(contact, name))
        recipient.selected_contact_id = contact_id
        return recipient

    def incomplete_roles(self) -> list[str]:
        missing: list[str] = []
        for recipient in self.recipients:
            if is_sender_role(recipient):
                continue
            if not (recipient.email or "").strip() or recipient.selected_contact_id is None:
                missing.append(recipient.role or recipient.role_key)
        return missing

    def is_ready(self) -> bool:
        return not self.incomplete_roles()

    def require_ready(self) -> None:
        missing = self.incomplete_roles()
        if missing:
            raise IncompleteBindingError(missing)
