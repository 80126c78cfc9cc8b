"""Risk criteria (impact / probability scale definitions)."""
from datetime import datetime
from sqlalchemy import String, Integer, Text, DateTime, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from typing import Optional
from riskreg.core.time import utc_now
from riskreg.models.base import Base


class RiskCriteria(Base):
    """Describes what a given scale value means for impact or probability."""
    __tablename__ = "risk_criteria"
    __table_args__ = (
        UniqueConstraint("criteria_type", "value", name="uq_criteria_type_value"),
        CheckConstraint("criteria_type IN ('IMPACT', 'PROBABILITY')", name="chk_criteria_type"),
        CheckConstraint("value >= 1 AND value <= 5", name="chk_criteria_value_range"),
    )

    criteria_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    criteria_type: Mapped[str] = mapped_column(String(20), nullable=False)
    scale_label: Mapped[str] = mapped_column(
        String(100), nullable=False,
        comment="Display label, e.g. 'Signifikan' or 'Hampir Pasti'"
    )
    value: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utc_now, onupdate=utc_now
    )
