from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class ContactRead(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, coerce_numbers_to_str=True)

    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    address: str | None = None
    title: str | None = None
    company_name: str | None = None
    contact_type: Any = None
