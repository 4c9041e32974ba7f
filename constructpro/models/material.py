from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from constructpro.db.base import Base
from constructpro.models.supplier import Supplier


class Material(Base):
    __tablename__ = "materials"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    material_code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    unit: Mapped[str] = mapped_column(String(20), nullable=False)  # e.g. "bag", "m3", "ton"

    unit_cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    minimum_stock_level: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 3), nullable=True)
    maximum_stock_level: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 3), nullable=True)
    reorder_point: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 3), nullable=True)

    supplier_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("suppliers.id"), nullable=True, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="1")

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    supplier: Mapped[Optional[Supplier]] = relationship(lazy="joined")

    __table_args__ = (
        Index("ix_materials_category_name", "category", "name"),
        Index("ix_materials_active_name", "is_active", "name"),
    )
