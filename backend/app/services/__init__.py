from app.services.audit import AuditService
from app.services.contact import ContactService
from app.services.sign_api import SignApiClient, UpstreamApiError
from app.services.submission import SubmissionLedger, SubmissionOrchestrator
from app.services.template_resolver import TemplateResolver
from app.services.workflow import WorkflowConfigurationService

__all__ = [
    "AuditService",
    "ContactService",
    "SignApiClient",
    "UpstreamApiError",
    "SubmissionLedger",
    "SubmissionOrchestrator",
    "TemplateResolver",
    "WorkflowConfigurationService",
]
