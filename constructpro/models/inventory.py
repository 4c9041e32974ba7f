from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from constructpro.db.base import Base


class MaterialInventory(Base):
    """
    Current stock for one (material, location type, location reference, project) account.
    Missing references are stored as "" and missing projects as 0 so the unique key
    addresses exactly one row.
    """
    __tablename__ = "material_inventory"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    material_id: Mapped[str] = mapped_column(String(36), ForeignKey("materials.id"), nullable=False, index=True)
    location_type: Mapped[str] = mapped_column(String(10), nullable=False)  # "STORE", "SITE"
    location_reference: Mapped[str] = mapped_column(String(100), nullable=False, default="", server_default="")
    project_id: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

    current_stock: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False, default=0, server_default="0")
    reserved_stock: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False, default=0, server_default="0")
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        UniqueConstraint(
            "material_id",
            "location_type",
            "location_reference",
            "project_id",
            name="uq_material_inventory_location",
        ),
        CheckConstraint("current_stock >= 0", name="ck_material_inventory_stock_non_negative"),
        Index("ix_material_inventory_location", "location_type", "project_id"),
    )
