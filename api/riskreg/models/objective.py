"""Strategic objective model."""
from datetime import datetime
from sqlalchemy import String, Integer, Text, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship
from typing import List, Optional, TYPE_CHECKING
from riskreg.core.time import utc_now
from riskreg.models.base import Base

if TYPE_CHECKING:
    from riskreg.models.org_unit import OrgUnit
    from riskreg.models.risk import Risk


class StrategicObjective(Base):
    """Business objective of a unit; risks are registered against it."""
    __tablename__ = "strategic_objectives"

    objective_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    unit_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("org_units.unit_id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    objective: Mapped[str] = mapped_column(Text, nullable=False)
    strategy: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    expected_outcome: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    risk_value: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, comment="Stated risk appetite value"
    )
    risk_limit: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, comment="Stated risk tolerance limit"
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utc_now, onupdate=utc_now
    )

    unit: Mapped["OrgUnit"] = relationship("OrgUnit", back_populates="objectives")
    risks: Mapped[List["Risk"]] = relationship("Risk", back_populates="objective")
