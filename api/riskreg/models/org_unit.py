"""Organizational unit model."""
from datetime import datetime
from sqlalchemy import String, Integer, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship
from typing import List, Optional, TYPE_CHECKING
from riskreg.core.time import utc_now
from riskreg.models.base import Base

if TYPE_CHECKING:
    from riskreg.models.user import User
    from riskreg.models.risk import Risk
    from riskreg.models.objective import StrategicObjective


class OrgUnit(Base):
    """Organizational unit that owns risks, objectives and users."""
    __tablename__ = "org_units"

    unit_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    hierarchy_level: Mapped[Optional[str]] = mapped_column(
        String(100), nullable=True,
        comment="Free-text position in the organization, e.g. Directorate, Division"
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utc_now, onupdate=utc_now
    )

    users: Mapped[List["User"]] = relationship("User", back_populates="unit")
    risks: Mapped[List["Risk"]] = relationship("Risk", back_populates="owner_unit")
    objectives: Mapped[List["StrategicObjective"]] = relationship(
        "StrategicObjective", back_populates="unit"
    )
