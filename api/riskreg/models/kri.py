"""Key risk indicator model."""
from datetime import datetime
from decimal import Decimal
from sqlalchemy import String, Integer, DateTime, ForeignKey, Numeric
from sqlalchemy.orm import Mapped, mapped_column, relationship
from typing import Optional, TYPE_CHECKING
from riskreg.core.time import utc_now
from riskreg.models.base import Base

if TYPE_CHECKING:
    from riskreg.models.risk import Risk


class KeyRiskIndicator(Base):
    """Monitored metric tied to a risk."""
    __tablename__ = "key_risk_indicators"

    kri_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    risk_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("risks.risk_id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    indicator_name: Mapped[str] = mapped_column(String(500), nullable=False)
    unit_of_measure: Mapped[str] = mapped_column(String(100), nullable=False)
    threshold_category: Mapped[Optional[str]] = mapped_column(
        String(50), nullable=True, comment="e.g. Safe, Caution, Danger"
    )
    threshold_value: Mapped[Optional[Decimal]] = mapped_column(Numeric(18, 4), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utc_now, onupdate=utc_now
    )

    risk: Mapped["Risk"] = relationship("Risk", back_populates="kris")
