from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.api.deps import get_api_client, get_session_context
from app.schemas.contact import ContactRead
from app.schemas.workflow import SessionContext
from app.services.contact import ContactService
from app.services.sign_api import SignApiClient, UpstreamApiError

router = APIRouter(prefix="/contacts", tags=["contacts"])


@router.get("", response_model=list[ContactRead])
async def search_contacts(
    contact_type: str | None = Query(None),
    context: SessionContext = Depends(get_session_context),
    client: SignApiClient = Depends(get_api_client),
) -> list[ContactRead]:
    service = ContactService(client)
    try:
        return await service.search(context, (contact_type or "").strip() or None)
    except UpstreamApiError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"message": str(exc), "upstream_status": exc.status_code},
        ) from exc
