from typing import Annotated, AsyncGenerator, Generator

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlmodel import Session

from app.db.session import get_session
from app.schemas.workflow import SessionContext
from app.services.audit import AuditService
from app.services.sign_api import SignApiClient
from app.services.submission import SubmissionLedger
from app.services.workflow import WorkflowConfigurationService
from app.utils.security import token_subject

# Tokens are issued by the upstream OAuth server; this API only forwards them.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/oauth/token")


def get_db() -> Generator[Session, None, None]:
    yield from get_session()


def get_session_context(
    token: Annotated[str, Depends(oauth2_scheme)],
    x_company_id: Annotated[str | None, Header()] = None,
    x_user_id: Annotated[str | None, Header()] = None,
) -> SessionContext:
    company_id = (x_company_id or "").strip()
    if not company_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="X-Company-Id header is required")
    user_id = (x_user_id or "").strip() or token_subject(token)
    return SessionContext(company_id=company_id, user_id=user_id, access_token=token)


async def get_api_client(
    context: Annotated[SessionContext, Depends(get_session_context)],
) -> AsyncGenerator[SignApiClient, None]:
    async with SignApiClient.for_context(context) as client:
        yield client


def get_configuration_service(
    client: Annotated[SignApiClient, Depends(get_api_client)],
    session: Annotated[Session, Depends(get_db)],
) -> WorkflowConfigurationService:
    return WorkflowConfigurationService.from_client(
        client,
        ledger=SubmissionLedger(session),
        audit_service=AuditService(session),
    )
