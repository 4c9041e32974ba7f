from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from constructpro.core.money import MAX_QUANTITY
from constructpro.schemas.common import PaginationMeta

LocationType = Literal["STORE", "SITE"]


class LocationIn(BaseModel):
    type: LocationType
    reference: str | None = Field(default=None, max_length=100)
    project_id: int | None = Field(default=None, ge=0)


class InventoryAdjustIn(BaseModel):
    material_id: str
    location: LocationIn
    adjustment_type: Literal["INCREASE", "DECREASE"]
    quantity: Decimal = Field(gt=0, le=MAX_QUANTITY)
    reason: str = Field(min_length=3, max_length=255)

    @field_validator("reason")
    @classmethod
    def validate_reason(cls, value: str) -> str:
        cleaned = value.strip()
        if len(cleaned) < 3:
            raise ValueError("reason must be at least 3 characters")
        return cleaned

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "material_id": "material-id-here",
                "location": {"type": "STORE", "reference": "Main Store"},
                "adjustment_type": "INCREASE",
                "quantity": 100,
                "reason": "Goods received from supplier",
            }
        }
    )


class InventoryTransferIn(BaseModel):
    material_id: str
    from_location: LocationIn
    to_location: LocationIn
    quantity: Decimal = Field(gt=0, le=MAX_QUANTITY)
    notes: str | None = Field(default=None, max_length=1000)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "material_id": "material-id-here",
                "from_location": {"type": "STORE", "reference": "Main Store"},
                "to_location": {"type": "SITE", "reference": "Site Stock", "project_id": 12},
                "quantity": 20,
                "notes": "Weekly site replenishment",
            }
        }
    )


class MaterialInventoryOut(BaseModel):
    id: str
    material_id: str
    location_type: str
    location_reference: str
    project_id: int
    current_stock: float
    reserved_stock: float
    last_updated: datetime | None = None


class InventoryAdjustOut(BaseModel):
    inventory: MaterialInventoryOut
    warnings: list[str] = Field(default_factory=list)


class InventoryTransferOut(BaseModel):
    source: MaterialInventoryOut
    destination: MaterialInventoryOut
    warnings: list[str] = Field(default_factory=list)


class MaterialInventoryListOut(BaseModel):
    items: list[MaterialInventoryOut]
    pagination: PaginationMeta


class LocationOut(BaseModel):
    location_type: str
    reference: str
    project_id: int


class MaterialTransactionOut(BaseModel):
    id: str
    material_id: str
    transaction_type: str
    reference_type: str | None = None
    reference_id: str | None = None
    from_location: LocationOut | None = None
    to_location: LocationOut | None = None
    quantity: float
    unit_cost: float | None = None
    total_cost: float | None = None
    performed_by_id: str | None = None
    notes: str | None = None
    created_at: datetime | None = None


class MaterialTransactionListOut(BaseModel):
    items: list[MaterialTransactionOut]
    pagination: PaginationMeta


class ReconciliationLineOut(BaseModel):
    material_id: str
    location: LocationOut
    ledger_balance: float
    replayed_balance: float
    matches: bool


class ReconciliationOut(BaseModel):
    balanced: bool
    lines: list[ReconciliationLineOut]
