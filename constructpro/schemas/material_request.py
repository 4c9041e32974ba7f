from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from constructpro.core.money import MAX_QUANTITY
from constructpro.schemas.common import PaginationMeta

Urgency = Literal["LOW", "NORMAL", "HIGH", "CRITICAL"]
DeliveryLocation = Literal["STORE", "SITE"]


def _clean_optional(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = value.strip()
    return cleaned or None


class MaterialRequestCreateIn(BaseModel):
    material_id: str
    project_id: int = Field(gt=0)
    requested_quantity: Decimal = Field(gt=0, le=MAX_QUANTITY)
    justification: str = Field(min_length=1, max_length=1000)
    urgency: Urgency = "NORMAL"
    delivery_location: DeliveryLocation = "SITE"
    required_date: datetime | None = None

    @field_validator("justification")
    @classmethod
    def validate_justification(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("justification is required")
        return cleaned

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "material_id": "material-id-here",
                "project_id": 12,
                "requested_quantity": 5,
                "justification": "Ground floor slab casting",
                "urgency": "HIGH",
                "delivery_location": "SITE",
                "required_date": "2026-10-20T08:00:00Z",
            }
        }
    )


class MaterialRequestApproveIn(BaseModel):
    approved: bool
    approved_quantity: Decimal | None = Field(default=None, gt=0, le=MAX_QUANTITY)
    approval_comments: str | None = Field(default=None, max_length=1000)
    rejection_reason: str | None = Field(default=None, max_length=1000)

    @field_validator("approval_comments", "rejection_reason")
    @classmethod
    def normalize_text(cls, value: str | None) -> str | None:
        return _clean_optional(value)

    @model_validator(mode="after")
    def validate_rejection_reason(self) -> "MaterialRequestApproveIn":
        if not self.approved and not self.rejection_reason:
            raise ValueError("rejection_reason is required when rejecting a request")
        return self


class MaterialRequestIssueIn(BaseModel):
    issued_quantity: Decimal = Field(gt=0, le=MAX_QUANTITY)
    issuance_comments: str | None = Field(default=None, max_length=1000)

    @field_validator("issuance_comments")
    @classmethod
    def normalize_text(cls, value: str | None) -> str | None:
        return _clean_optional(value)


class MaterialRequestAcknowledgeIn(BaseModel):
    acknowledged_quantity: Decimal = Field(ge=0, le=MAX_QUANTITY)
    acknowledgment_comments: str | None = Field(default=None, max_length=1000)

    @field_validator("acknowledgment_comments")
    @classmethod
    def normalize_text(cls, value: str | None) -> str | None:
        return _clean_optional(value)


class MaterialRequestCompleteIn(BaseModel):
    completion_comments: str | None = Field(default=None, max_length=1000)

    @field_validator("completion_comments")
    @classmethod
    def normalize_text(cls, value: str | None) -> str | None:
        return _clean_optional(value)


class MaterialRequestCancelIn(BaseModel):
    reason: str = Field(min_length=1, max_length=1000)

    @field_validator("reason")
    @classmethod
    def validate_reason(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("reason is required")
        return cleaned


class MaterialSummaryOut(BaseModel):
    id: str
    material_code: str
    name: str
    category: str
    unit: str


class MaterialRequestOut(BaseModel):
    id: str
    request_number: str
    material_id: str
    material: MaterialSummaryOut | None = None
    project_id: int
    requested_by_id: str
    requested_quantity: float
    justification: str
    urgency: str
    delivery_location: str
    required_date: datetime | None = None
    status: str
    approved_quantity: float | None = None
    issued_quantity: float | None = None
    acknowledged_quantity: float | None = None
    unit_cost: float | None = None
    total_cost: float | None = None
    approved_by_id: str | None = None
    approval_date: datetime | None = None
    approval_comments: str | None = None
    issued_by_id: str | None = None
    issuance_date: datetime | None = None
    issuance_comments: str | None = None
    acknowledged_by_id: str | None = None
    acknowledgment_date: datetime | None = None
    acknowledgment_comments: str | None = None
    completed_by_id: str | None = None
    completion_date: datetime | None = None
    completion_comments: str | None = None
    rejection_reason: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class MaterialRequestListOut(BaseModel):
    items: list[MaterialRequestOut]
    pagination: PaginationMeta
