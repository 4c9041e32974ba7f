from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from constructpro.schemas.common import PaginationMeta


class SupplierCreateIn(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    contact_person: str | None = Field(default=None, max_length=100)
    email: EmailStr | None = None
    phone: str | None = Field(default=None, max_length=20)
    address: str | None = Field(default=None, max_length=500)
    tax_number: str | None = Field(default=None, max_length=50)
    payment_terms: str | None = Field(default=None, max_length=100)

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("name is required")
        return cleaned

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "Dangote Cement Depot",
                "contact_person": "Musa Bello",
                "email": "sales@depot.example.com",
                "phone": "+2348000000000",
                "payment_terms": "Net 30",
            }
        }
    )


class SupplierUpdateIn(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    contact_person: str | None = Field(default=None, max_length=100)
    email: EmailStr | None = None
    phone: str | None = Field(default=None, max_length=20)
    address: str | None = Field(default=None, max_length=500)
    tax_number: str | None = Field(default=None, max_length=50)
    payment_terms: str | None = Field(default=None, max_length=100)
    is_active: bool | None = None


class SupplierOut(BaseModel):
    id: str
    name: str
    contact_person: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    tax_number: str | None = None
    payment_terms: str | None = None
    is_active: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class SupplierListOut(BaseModel):
    items: list[SupplierOut]
    pagination: PaginationMeta
