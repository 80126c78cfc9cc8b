"""Treatment plan and realization models."""
import enum
from datetime import date, datetime
from decimal import Decimal
from sqlalchemy import String, Integer, Text, Date, DateTime, ForeignKey, Numeric, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from typing import List, Optional, TYPE_CHECKING
from riskreg.core.time import utc_now
from riskreg.models.base import Base

if TYPE_CHECKING:
    from riskreg.models.risk import Risk
    from riskreg.models.user import User


class TreatmentOption(str, enum.Enum):
    MITIGATE = "MITIGATE"
    ACCEPT = "ACCEPT"
    AVOID = "AVOID"
    TRANSFER = "TRANSFER"


class RealizationStatus(str, enum.Enum):
    PLANNING = "PLANNING"
    ON_TRACK = "ON_TRACK"
    IN_PROGRESS = "IN_PROGRESS"
    DELAYED = "DELAYED"
    COMPLETED = "COMPLETED"


class TreatmentPlan(Base):
    """Planned response to a risk, owned by a PIC."""
    __tablename__ = "treatment_plans"
    __table_args__ = (
        CheckConstraint(
            "treatment_option IS NULL OR treatment_option IN ('MITIGATE', 'ACCEPT', 'AVOID', 'TRANSFER')",
            name="chk_treatment_option"
        ),
        CheckConstraint("cost IS NULL OR cost >= 0", name="chk_treatment_cost"),
        CheckConstraint("timeline_months IS NULL OR timeline_months >= 1", name="chk_treatment_timeline"),
    )

    treatment_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    risk_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("risks.risk_id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    pic_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.user_id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
        comment="Person in charge"
    )
    treatment_option: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    treatment_plan: Mapped[str] = mapped_column(Text, nullable=False)
    output: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cost: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 2), nullable=True)
    timeline_months: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    program_type: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, comment="Budget program classification"
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utc_now, onupdate=utc_now
    )

    risk: Mapped["Risk"] = relationship("Risk", back_populates="treatments")
    pic: Mapped["User"] = relationship("User")
    realizations: Mapped[List["TreatmentRealization"]] = relationship(
        "TreatmentRealization",
        back_populates="treatment",
        cascade="all, delete-orphan",
        order_by="TreatmentRealization.period.desc()"
    )

    @property
    def latest_realization(self) -> Optional["TreatmentRealization"]:
        return self.realizations[0] if self.realizations else None

    @property
    def realization_count(self) -> int:
        return len(self.realizations)


class TreatmentRealization(Base):
    """Periodic progress report against a treatment plan."""
    __tablename__ = "treatment_realizations"
    __table_args__ = (
        CheckConstraint(
            "status IN ('PLANNING', 'ON_TRACK', 'IN_PROGRESS', 'DELAYED', 'COMPLETED')",
            name="chk_realization_status"
        ),
    )

    realization_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    treatment_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("treatment_plans.treatment_id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    period: Mapped[date] = mapped_column(Date, nullable=False)
    kri_realization: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    plan_realization: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    output_realization: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cost_realization: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 2), nullable=True)
    absorption_pct: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(5, 2), nullable=True, comment="Budget absorption percentage"
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=RealizationStatus.PLANNING.value)
    progress: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)

    treatment: Mapped["TreatmentPlan"] = relationship("TreatmentPlan", back_populates="realizations")
