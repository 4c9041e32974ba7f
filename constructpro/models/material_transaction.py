from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from constructpro.db.base import Base


class MaterialTransaction(Base):
    """
    One row per stock movement, never updated or deleted.
    ISSUE/TRANSFER quantities are positive and move stock from -> to.
    ADJUSTMENT quantities are signed and apply to the "to" location.
    """
    __tablename__ = "material_transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    material_id: Mapped[str] = mapped_column(String(36), ForeignKey("materials.id"), nullable=False, index=True)
    transaction_type: Mapped[str] = mapped_column(String(20), nullable=False)  # "ISSUE", "TRANSFER", "ADJUSTMENT"
    reference_type: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)  # e.g. "REQUEST"
    reference_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True, index=True)

    from_location_type: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    from_location_reference: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    from_project_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    to_location_type: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    to_location_reference: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    to_project_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    quantity: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False)
    unit_cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    total_cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), nullable=True)

    performed_by_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("users.id"), nullable=True, index=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("ix_material_transactions_material_created_at", "material_id", "created_at"),
        Index("ix_material_transactions_type_created_at", "transaction_type", "created_at"),
    )
