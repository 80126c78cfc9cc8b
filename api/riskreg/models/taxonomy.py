"""Risk taxonomy model."""
from datetime import datetime
from sqlalchemy import String, Integer, Text, DateTime, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from typing import List, Optional, TYPE_CHECKING
from riskreg.core.time import utc_now
from riskreg.models.base import Base

if TYPE_CHECKING:
    from riskreg.models.risk import Risk


class RiskTaxonomy(Base):
    """Two-level risk category (category / subcategory)."""
    __tablename__ = "risk_taxonomies"
    __table_args__ = (
        UniqueConstraint("category", "subcategory", name="uq_taxonomy_category_subcategory"),
    )

    taxonomy_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    category: Mapped[str] = mapped_column(
        String(255), nullable=False, index=True,
        comment="Top-level risk category"
    )
    subcategory: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utc_now, onupdate=utc_now
    )

    risks: Mapped[List["Risk"]] = relationship("Risk", back_populates="category")
