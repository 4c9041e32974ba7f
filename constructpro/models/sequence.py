from sqlalchemy import BigInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from constructpro.db.base import Base


class MaterialRequestSequence(Base):
    """Named counter rows; the locked row is the only source of the next request number."""
    __tablename__ = "material_request_sequences"

    name: Mapped[str] = mapped_column(String(50), primary_key=True)
    current_value: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
