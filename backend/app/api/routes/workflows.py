from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session

from app.api.deps import get_configuration_service, get_db, get_session_context
from app.schemas.audit import AuditEventRead
from app.schemas.contact import ContactRead
from app.schemas.workflow import (
    SessionContext,
    SubmissionResult,
    WorkflowConfigurationRead,
    WorkflowSubmissionRead,
    WorkflowSubmitRequest,
)
from app.services.audit import AuditService
from app.services.contact import ContactNotFoundError
from app.services.recipients import IncompleteBindingError, UnknownRoleError
from app.services.sign_api import UpstreamApiError
from app.services.submission import SubmissionError, SubmissionLedger
from app.services.workflow import WorkflowConfigurationService, WorkflowNotFoundError

router = APIRouter(prefix="/workflows", tags=["workflows"])


def _upstream_error(exc: UpstreamApiError) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_502_BAD_GATEWAY,
        detail={"message": str(exc), "upstream_status": exc.status_code},
    )


@router.get("/{workflow_id}/configuration", response_model=WorkflowConfigurationRead)
async def get_configuration(
    workflow_id: str,
    context: SessionContext = Depends(get_session_context),
    service: WorkflowConfigurationService = Depends(get_configuration_service),
) -> WorkflowConfigurationRead:
    try:
        configuration = await service.load(workflow_id, context)
    except WorkflowNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except UpstreamApiError as exc:
        raise _upstream_error(exc) from exc
    return configuration.to_read()


@router.get("/{workflow_id}/roles/{role_key}/contacts", response_model=List[ContactRead])
async def list_role_contacts(
    workflow_id: str,
    role_key: str,
    context: SessionContext = Depends(get_session_context),
    service: WorkflowConfigurationService = Depends(get_configuration_service),
) -> List[ContactRead]:
    try:
        return await service.contact_options(workflow_id, role_key, context)
    except WorkflowNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except UnknownRoleError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except UpstreamApiError as exc:
        raise _upstream_error(exc) from exc


@router.post("/{workflow_id}/submit", response_model=SubmissionResult)
async def submit_workflow(
    workflow_id: str,
    payload: WorkflowSubmitRequest,
    context: SessionContext = Depends(get_session_context),
    service: WorkflowConfigurationService = Depends(get_configuration_service),
) -> SubmissionResult:
    try:
        return await service.submit(
            workflow_id,
            context,
            payload.bindings,
            enforce_signature_order=payload.enforce_signature_order,
        )
    except WorkflowNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except IncompleteBindingError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": str(exc), "roles": exc.roles},
        ) from exc
    except (UnknownRoleError, ContactNotFoundError) as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc.args[0])) from exc
    except SubmissionError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"phase": exc.phase.value, "message": exc.message, "response_id": exc.response_id},
        ) from exc
    except UpstreamApiError as exc:
        raise _upstream_error(exc) from exc


@router.get("/{workflow_id}/submissions", response_model=List[WorkflowSubmissionRead])
def list_submissions(
    workflow_id: str,
    session: Session = Depends(get_db),
    context: SessionContext = Depends(get_session_context),
) -> List[WorkflowSubmissionRead]:
    submissions = SubmissionLedger(session).list_for_workflow(workflow_id)
    return [
        WorkflowSubmissionRead.model_validate(item)
        for item in submissions
        if item.company_id == context.company_id
    ]


@router.get("/{workflow_id}/events", response_model=List[AuditEventRead])
def list_events(
    workflow_id: str,
    session: Session = Depends(get_db),
    context: SessionContext = Depends(get_session_context),
) -> List[AuditEventRead]:
    events = AuditService(session).list_events(workflow_id=workflow_id, company_id=context.company_id)
    return [AuditEventRead.model_validate(event) for event in events]
