from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class AuditEventRead(BaseModel):
    id: UUID
    created_at: datetime
    event_type: str
    workflow_id: str | None
    company_id: str | None
    actor_id: str | None
    details: dict[str, Any] | None

    model_config = ConfigDict(from_attributes=True)
