from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from app.models.workflow import SubmissionPhase, SubmissionState
from app.utils.envelope import extract_id

CONTACT_FIELDS: tuple[str, ...] = (
    "email",
    "first_name",
    "last_name",
    "phone",
    "address",
    "title",
    "company_name",
)


def _optional_order(value: Any) -> int | None:
    """Signing order as an int; blanks and unparseable values count as unset."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        cleaned = value.strip()
        if cleaned.lstrip("-").isdigit():
            return int(cleaned)
    return None


def _optional_flag(value: Any) -> bool | None:
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        cleaned = value.strip().lower()
        if cleaned in {"true", "1", "yes"}:
            return True
        if cleaned in {"false", "0", "no"}:
            return False
    return None


class SessionContext(BaseModel):
    """Caller identity threaded through every component that needs it."""

    model_config = ConfigDict(frozen=True)

    company_id: str
    user_id: str | None = None
    access_token: str | None = None


class RecipientDefinition(BaseModel):
    """A recipient as declared inside one template."""

    model_config = ConfigDict(extra="allow", populate_by_name=True, coerce_numbers_to_str=True)

    role: str | None = None
    contact_type_name: str | None = None
    contact_type: Any = None
    user_type: str | None = None
    type: str | None = None
    e_signature_required: bool | None = None
    e_signature_order: int | None = None
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    address: str | None = None
    title: str | None = None
    company_name: str | None = None
    value: str | None = None
    contact_id: str | None = None

    @field_validator("contact_id", mode="before")
    @classmethod
    def normalize_contact_id(cls, value: Any) -> str | None:
        return extract_id(value)

    @field_validator("e_signature_order", mode="before")
    @classmethod
    def normalize_order(cls, value: Any) -> int | None:
        return _optional_order(value)

    @field_validator("e_signature_required", mode="before")
    @classmethod
    def normalize_required(cls, value: Any) -> bool | None:
        return _optional_flag(value)


class Template(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True, coerce_numbers_to_str=True)

    id: str | None = Field(default=None, validation_alias=AliasChoices("_id", "id"))
    title: str | None = Field(default=None, validation_alias=AliasChoices("title", "name"))
    status: str | None = None
    is_active: bool | None = None
    document_users: list[RecipientDefinition] = Field(default_factory=list)

    @field_validator("document_users", mode="before")
    @classmethod
    def normalize_users(cls, value: Any) -> list[Any]:
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, dict)]

    @field_validator("is_active", mode="before")
    @classmethod
    def normalize_active(cls, value: Any) -> bool | None:
        return _optional_flag(value)


class Workflow(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True, coerce_numbers_to_str=True)

    id: str | None = Field(default=None, validation_alias=AliasChoices("_id", "id"))
    name: str | None = None
    company_id: Any = Field(default=None, validation_alias=AliasChoices("company_id", "company"))
    document_templates: list[dict[str, Any]] | None = None
    templates: list[dict[str, Any]] | None = None
    enforce_signature_order: bool = False

    @field_validator("enforce_signature_order", mode="before")
    @classmethod
    def normalize_enforce(cls, value: Any) -> bool:
        return _optional_flag(value) is True


class ResolvedTemplate(BaseModel):
    """A fetched template kept next to the reference it came from."""

    position: int
    template_id: str
    reference: dict[str, Any]
    template: Template


class FlatRecipient(RecipientDefinition):
    source_template_id: str | None = Field(default=None, alias="_templateId")
    source_template_name: str | None = Field(default=None, alias="_templateName")
    ui_id: str = Field(alias="_uiId")


class TemplateInvolvement(BaseModel):
    template_id: str | None = None
    template_name: str | None = None
    user_type: str | None = None


class GroupedRecipient(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True, coerce_numbers_to_str=True)

    role_key: str
    role: str | None = None
    is_sender: bool = False
    contact_type_name: str | None = None
    contact_type: Any = None
    user_type: str | None = None
    type: str | None = None
    e_signature_required: bool | None = None
    e_signature_order: int | None = None
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    address: str | None = None
    title: str | None = None
    company_name: str | None = None
    value: str | None = None
    contact_id: str | None = None
    selected_contact_id: str | None = None
    templates: list[TemplateInvolvement] = Field(default_factory=list)
    involved_templates: str | None = Field(default=None, alias="_involvedTemplates")

    @field_validator("contact_id", mode="before")
    @classmethod
    def normalize_contact_id(cls, value: Any) -> str | None:
        return extract_id(value)

    @field_validator("e_signature_order", mode="before")
    @classmethod
    def normalize_order(cls, value: Any) -> int | None:
        return _optional_order(value)

    @field_validator("e_signature_required", mode="before")
    @classmethod
    def normalize_required(cls, value: Any) -> bool | None:
        return _optional_flag(value)


class DocumentTemplateEntry(BaseModel):
    template_id: str
    template_response_id: str | None = None
    document_order: int = 0
    template_completion_status: str = "TO-START"
    is_settings_updated: bool = False


class WorkflowUser(BaseModel):
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    address: str | None = None
    title: str | None = None
    company_name: str | None = None
    role: str | None = None
    templates: list[TemplateInvolvement]
    value: str
    type: str
    user_type: str
    contact_id: str | None = None
    full_name: str


class WorkflowResponsePayload(BaseModel):
    company_id: str
    document_templates: list[DocumentTemplateEntry]
    workflow_users: list[WorkflowUser]
    primary_user: WorkflowUser | None = None
    enforce_signature_order: bool = False


class RecipientBindingIn(BaseModel):
    role_key: str = Field(min_length=1)
    contact_id: str = Field(min_length=1)


class WorkflowSubmitRequest(BaseModel):
    bindings: list[RecipientBindingIn] = Field(default_factory=list)
    enforce_signature_order: bool | None = None


class WorkflowConfigurationRead(BaseModel):
    workflow_id: str
    name: str | None
    enforce_signature_order: bool
    document_templates: list[DocumentTemplateEntry]
    recipients: list[GroupedRecipient]
    ready: bool
    incomplete_roles: list[str]


class SubmissionResult(BaseModel):
    submission_id: UUID | None = None
    state: SubmissionState
    response_id: str | None = None
    resumed: bool = False


class WorkflowSubmissionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    created_at: datetime
    updated_at: datetime | None = None
    workflow_id: str
    company_id: str | None
    submitted_by: str | None
    payload_digest: str
    response_id: str | None
    state: SubmissionState
    failed_phase: SubmissionPhase | None
    error_message: str | None
    sent_at: datetime | None
