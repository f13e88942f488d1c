from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from app.schemas.contact import ContactRead
from app.schemas.workflow import GroupedRecipient, SessionContext
from app.services.stores import ContactStore
from app.utils.envelope import extract_id

logger = logging.getLogger("signflow.contacts")


class ContactNotFoundError(LookupError):
    def __init__(self, contact_id: str) -> None:
        super().__init__(f"Contact '{contact_id}' not found")
        self.contact_id = contact_id


class ContactService:
    def __init__(self, store: ContactStore) -> None:
        self.store = store

    @staticmethod
    def _normalize(items: list[dict[str, Any]]) -> list[ContactRead]:
        contacts: list[ContactRead] = []
        for item in items:
            try:
                contacts.append(ContactRead.model_validate(item))
            except ValidationError:
                logger.warning("Ignoring contact record without id: %s", item)
        return contacts

    async def search(self, context: SessionContext, contact_type: str | None = None) -> list[ContactRead]:
        items = await self.store.list_contacts(context.company_id, contact_type)
        return self._normalize(items)

    async def options_for(self, recipient: GroupedRecipient, context: SessionContext) -> list[ContactRead]:
        """Contacts offered for one role, narrowed to its contact type when it has one."""
        contact_type = recipient.contact_type
        if isinstance(contact_type, dict):
            contact_type = extract_id(contact_type)
        return await self.search(context, str(contact_type) if contact_type else None)

    async def index(self, context: SessionContext) -> dict[str, ContactRead]:
        return {contact.id: contact for contact in await self.search(context)}

    async def find(
        self,
        contact_id: str,
        context: SessionContext,
        contacts: dict[str, ContactRead] | None = None,
    ) -> ContactRead:
        """Locate one contact; pass an already loaded index to avoid listing again."""
        if contacts is None:
            contacts = await self.index(context)
        contact = contacts.get(contact_id)
        if contact is None:
            raise ContactNotFoundError(contact_id)
        return contact
