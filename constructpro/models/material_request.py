from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Numeric, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from constructpro.db.base import Base
from constructpro.models.material import Material


class MaterialRequest(Base):
    __tablename__ = "material_requests"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    request_number: Mapped[str] = mapped_column(String(30), nullable=False, unique=True)
    material_id: Mapped[str] = mapped_column(String(36), ForeignKey("materials.id"), nullable=False, index=True)
    project_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    requested_by_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id"), nullable=False, index=True)

    requested_quantity: Mapped[Decimal] = mapped_column(Numeric(14, 3), nullable=False)
    justification: Mapped[str] = mapped_column(Text, nullable=False)
    urgency: Mapped[str] = mapped_column(String(10), nullable=False, default="NORMAL", server_default="NORMAL")
    delivery_location: Mapped[str] = mapped_column(String(10), nullable=False, default="SITE", server_default="SITE")
    required_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    # PENDING -> APPROVED -> ISSUED -> ACKNOWLEDGED -> COMPLETED, REJECTED, CANCELLED
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PENDING", server_default="PENDING")

    approved_quantity: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 3), nullable=True)
    issued_quantity: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 3), nullable=True)
    acknowledged_quantity: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 3), nullable=True)

    unit_cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    total_cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), nullable=True)

    approved_by_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("users.id"), nullable=True)
    approval_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    approval_comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    issued_by_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("users.id"), nullable=True)
    issuance_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    issuance_comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    acknowledged_by_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("users.id"), nullable=True)
    acknowledgment_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    acknowledgment_comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    completed_by_id: Mapped[Optional[str]] = mapped_column(String(36), ForeignKey("users.id"), nullable=True)
    completion_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    completion_comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    material: Mapped[Material] = relationship(lazy="joined")

    __table_args__ = (
        Index("ix_material_requests_status_created_at", "status", "created_at"),
        Index("ix_material_requests_project_status", "project_id", "status"),
    )
