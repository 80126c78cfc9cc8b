"""Existing control model."""
import enum
from datetime import datetime
from sqlalchemy import String, Integer, Text, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from typing import Optional, TYPE_CHECKING
from riskreg.core.time import utc_now
from riskreg.models.base import Base

if TYPE_CHECKING:
    from riskreg.models.risk import Risk


class EffectivenessRating(str, enum.Enum):
    VERY_EFFECTIVE = "VERY_EFFECTIVE"
    EFFECTIVE = "EFFECTIVE"
    FAIRLY_EFFECTIVE = "FAIRLY_EFFECTIVE"
    LESS_EFFECTIVE = "LESS_EFFECTIVE"
    INEFFECTIVE = "INEFFECTIVE"


class ExistingControl(Base):
    """Mitigation already in place for a risk."""
    __tablename__ = "existing_controls"
    __table_args__ = (
        CheckConstraint(
            "effectiveness_rating IN ('VERY_EFFECTIVE', 'EFFECTIVE', 'FAIRLY_EFFECTIVE', "
            "'LESS_EFFECTIVE', 'INEFFECTIVE')",
            name="chk_control_effectiveness"
        ),
    )

    control_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    risk_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("risks.risk_id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    control_type: Mapped[str] = mapped_column(
        String(255), nullable=False, comment="e.g. Preventive, Detective, Corrective"
    )
    impact_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    effectiveness_rating: Mapped[str] = mapped_column(String(30), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utc_now, onupdate=utc_now
    )

    risk: Mapped["Risk"] = relationship("Risk", back_populates="controls")
