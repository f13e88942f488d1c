# noqa: F401 to ensure models are imported for metadata
from app.models.audit import AuditLog
from app.models.workflow import WorkflowSubmission

__all__ = [
    "AuditLog",
    "WorkflowSubmission",
]
