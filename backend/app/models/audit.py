from __future__ import annotations

from sqlalchemy import JSON
from sqlmodel import Field

from app.models.base import TimestampedModel, UUIDModel


class AuditLog(UUIDModel, TimestampedModel, table=True):
    __tablename__ = "audit_logs"

    workflow_id: str | None = Field(default=None, index=True, max_length=64)
    company_id: str | None = Field(default=None, index=True, max_length=64)
    event_type: str = Field(index=True)
    actor_id: str | None = Field(default=None, max_length=64)
    details: dict | None = Field(default_factory=dict, sa_type=JSON)
