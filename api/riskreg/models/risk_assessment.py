"""Inherent and residual risk assessment model."""
import enum
from datetime import datetime
from sqlalchemy import String, Integer, Text, DateTime, ForeignKey, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from typing import Optional, TYPE_CHECKING
from riskreg.core.time import utc_now
from riskreg.models.base import Base

if TYPE_CHECKING:
    from riskreg.models.risk import Risk


class AssessmentType(str, enum.Enum):
    INHERENT = "INHERENT"
    RESIDUAL = "RESIDUAL"


class RiskAssessment(Base):
    """Probability/impact assessment of a risk.

    ``exposure`` and ``level`` are derived from the two scale columns by
    riskreg.core.risk_scoring and are never accepted from clients.
    ``impact_value`` and ``probability_value`` are free-form (monetary amount,
    percentage) and only displayed.
    """
    __tablename__ = "risk_assessments"
    __table_args__ = (
        UniqueConstraint("risk_id", "assessment_type", name="uq_risk_assessment_type"),
        CheckConstraint("assessment_type IN ('INHERENT', 'RESIDUAL')", name="chk_assessment_type"),
        CheckConstraint("impact_scale >= 1 AND impact_scale <= 5", name="chk_impact_scale"),
        CheckConstraint("probability_scale >= 1 AND probability_scale <= 5", name="chk_probability_scale"),
        CheckConstraint(
            "level IN ('VERY_LOW', 'LOW', 'MODERATE', 'HIGH', 'VERY_HIGH')",
            name="chk_assessment_level"
        ),
    )

    assessment_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    risk_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("risks.risk_id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    assessment_type: Mapped[str] = mapped_column(String(20), nullable=False)

    impact_value: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, comment="Free-form impact magnitude"
    )
    impact_scale: Mapped[int] = mapped_column(Integer, nullable=False)
    probability_value: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, comment="Free-form probability, e.g. '60%'"
    )
    probability_scale: Mapped[int] = mapped_column(Integer, nullable=False)

    exposure: Mapped[int] = mapped_column(
        Integer, nullable=False, comment="probability_scale x impact_scale"
    )
    level: Mapped[str] = mapped_column(String(20), nullable=False)

    qualitative_impact_note: Mapped[Optional[str]] = mapped_column(
        Text, nullable=True, comment="Inherent assessments only"
    )
    target_residual: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, comment="Residual assessments only"
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utc_now, onupdate=utc_now
    )

    risk: Mapped["Risk"] = relationship("Risk", back_populates="assessments")
