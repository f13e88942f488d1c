from datetime import datetime
from enum import Enum
from typing import Optional

from sqlmodel import Field

from app.models.base import TimestampedModel, UUIDModel


class RecipientType(str, Enum):
    SENDER = "SENDER"
    RECEIVER = "RECEIVER"


class UserType(str, Enum):
    SIGNER = "SIGNER"
    VIEWER = "VIEWER"


class TemplateCompletionStatus(str, Enum):
    TO_START = "TO-START"
    IN_PROGRESS = "IN-PROGRESS"
    COMPLETED = "COMPLETED"


class SubmissionState(str, Enum):
    IDLE = "idle"
    CREATING = "creating"
    CREATED = "created"
    SENDING = "sending"
    SENT = "sent"
    FAILED = "failed"


class SubmissionPhase(str, Enum):
    CREATE = "create"
    SEND = "send"


class WorkflowSubmission(UUIDModel, TimestampedModel, table=True):
    __tablename__ = "workflow_submissions"

    workflow_id: str = Field(index=True, max_length=64)
    company_id: str | None = Field(default=None, index=True, max_length=64)
    submitted_by: str | None = Field(default=None, max_length=64)
    payload_digest: str = Field(index=True, max_length=64)
    response_id: str | None = Field(default=None, max_length=64)
    state: SubmissionState = Field(default=SubmissionState.IDLE)
    failed_phase: SubmissionPhase | None = Field(default=None)
    error_message: str | None = Field(default=None)
    sent_at: Optional[datetime] = Field(default=None)
