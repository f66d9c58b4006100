"""Vendor Pydantic schemas (request DTOs and response models)."""


from datetime import datetime

from querypager.schemas.common import CamelModel

class VendorCreate(CamelModel):
    company_name: str
    address_city: str | None = None
    address_state: str | None = None
    contact_name: str | None = None
    contact_email: str | None = None
    contact_phone: str | None = None
    rating: int = 0
    notes: str | None = None

class VendorUpdate(CamelModel):
    company_name: str | None = None
    address_city: str | None = None
    address_state: str | None = None
    contact_name: str | None = None
    contact_email: str | None = None
    contact_phone: str | None = None
    status: str | None = None
    rating: int | None = None
    notes: str | None = None

class VendorOut(CamelModel):
    id: str
    client_id: str
    company_name: str
    address_city: str | None = None
    address_state: str | None = None
    contact_name: str | None = None
    contact_email: str | None = None
    contact_phone: str | None = None
    status: str
    rating: int
    notes: str | None = None
    created_at: datetime
    updated_at: datetime
