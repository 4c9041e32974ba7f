from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from constructpro.core.money import MAX_QUANTITY, MAX_UNIT_COST
from constructpro.schemas.common import PaginationMeta


class MaterialCreateIn(BaseModel):
    material_code: str = Field(min_length=1, max_length=50)
    name: str = Field(min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    category: str = Field(min_length=1, max_length=100)
    unit: str = Field(min_length=1, max_length=20)
    unit_cost: Decimal | None = Field(default=None, ge=0, le=MAX_UNIT_COST)
    minimum_stock_level: Decimal | None = Field(default=None, ge=0, le=MAX_QUANTITY)
    maximum_stock_level: Decimal | None = Field(default=None, ge=0, le=MAX_QUANTITY)
    reorder_point: Decimal | None = Field(default=None, ge=0, le=MAX_QUANTITY)
    supplier_id: str | None = None

    @field_validator("material_code")
    @classmethod
    def normalize_material_code(cls, value: str) -> str:
        cleaned = value.strip().upper()
        if not cleaned:
            raise ValueError("material_code is required")
        return cleaned

    @field_validator("name", "category", "unit")
    @classmethod
    def validate_required_text(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("value cannot be blank")
        return cleaned

    @model_validator(mode="after")
    def validate_stock_levels(self) -> "MaterialCreateIn":
        if (
            self.minimum_stock_level is not None
            and self.maximum_stock_level is not None
            and self.maximum_stock_level < self.minimum_stock_level
        ):
            raise ValueError("maximum_stock_level cannot be below minimum_stock_level")
        return self

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "material_code": "CEM-425",
                "name": "Portland Cement 42.5R",
                "category": "Cement",
                "unit": "bag",
                "unit_cost": 10.0,
                "minimum_stock_level": 50,
                "maximum_stock_level": 2000,
                "reorder_point": 100,
            }
        }
    )


class MaterialUpdateIn(BaseModel):
    material_code: str | None = Field(default=None, min_length=1, max_length=50)
    name: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=1000)
    category: str | None = Field(default=None, min_length=1, max_length=100)
    unit: str | None = Field(default=None, min_length=1, max_length=20)
    unit_cost: Decimal | None = Field(default=None, ge=0, le=MAX_UNIT_COST)
    minimum_stock_level: Decimal | None = Field(default=None, ge=0, le=MAX_QUANTITY)
    maximum_stock_level: Decimal | None = Field(default=None, ge=0, le=MAX_QUANTITY)
    reorder_point: Decimal | None = Field(default=None, ge=0, le=MAX_QUANTITY)
    supplier_id: str | None = None
    is_active: bool | None = None

    @field_validator("material_code")
    @classmethod
    def normalize_material_code(cls, value: str | None) -> str | None:
        if value is None:
            return None
        cleaned = value.strip().upper()
        if not cleaned:
            raise ValueError("material_code cannot be blank")
        return cleaned


class SupplierSummaryOut(BaseModel):
    id: str
    name: str
    contact_person: str | None = None


class MaterialOut(BaseModel):
    id: str
    material_code: str
    name: str
    description: str | None = None
    category: str
    unit: str
    unit_cost: float | None = None
    minimum_stock_level: float | None = None
    maximum_stock_level: float | None = None
    reorder_point: float | None = None
    supplier_id: str | None = None
    supplier: SupplierSummaryOut | None = None
    is_active: bool
    total_stock: float | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class MaterialListOut(BaseModel):
    items: list[MaterialOut]
    pagination: PaginationMeta
