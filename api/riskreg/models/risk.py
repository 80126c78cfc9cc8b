"""Risk register model."""
from datetime import datetime
from sqlalchemy import String, Integer, Text, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship
from typing import List, Optional, TYPE_CHECKING
from riskreg.core.time import utc_now
from riskreg.models.base import Base

if TYPE_CHECKING:
    from riskreg.models.org_unit import OrgUnit
    from riskreg.models.objective import StrategicObjective
    from riskreg.models.taxonomy import RiskTaxonomy
    from riskreg.models.risk_assessment import RiskAssessment
    from riskreg.models.control import ExistingControl
    from riskreg.models.kri import KeyRiskIndicator
    from riskreg.models.treatment import TreatmentPlan


class Risk(Base):
    """A registered risk.

    Holds at most one INHERENT and one RESIDUAL assessment (enforced by a
    unique constraint on the assessment table). Deleting a risk removes its
    assessments, controls, KRIs and treatment plans.
    """
    __tablename__ = "risks"

    risk_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    risk_number: Mapped[str] = mapped_column(
        String(50), nullable=False, unique=True, index=True,
        comment="Business identifier, e.g. RISK-0001"
    )
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    objective_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("strategic_objectives.objective_id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    owner_unit_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("org_units.unit_id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    category_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("risk_taxonomies.taxonomy_id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utc_now, onupdate=utc_now
    )

    objective: Mapped["StrategicObjective"] = relationship("StrategicObjective", back_populates="risks")
    owner_unit: Mapped["OrgUnit"] = relationship("OrgUnit", back_populates="risks")
    category: Mapped["RiskTaxonomy"] = relationship("RiskTaxonomy", back_populates="risks")

    assessments: Mapped[List["RiskAssessment"]] = relationship(
        "RiskAssessment", back_populates="risk", cascade="all, delete-orphan"
    )
    controls: Mapped[List["ExistingControl"]] = relationship(
        "ExistingControl", back_populates="risk", cascade="all, delete-orphan"
    )
    kris: Mapped[List["KeyRiskIndicator"]] = relationship(
        "KeyRiskIndicator", back_populates="risk", cascade="all, delete-orphan"
    )
    treatments: Mapped[List["TreatmentPlan"]] = relationship(
        "TreatmentPlan", back_populates="risk", cascade="all, delete-orphan"
    )

    def get_assessment(self, assessment_type: str) -> Optional["RiskAssessment"]:
        for assessment in self.assessments:
            if assessment.assessment_type == assessment_type:
                return assessment
        return None

    @property
    def inherent_assessment(self) -> Optional["RiskAssessment"]:
        return self.get_assessment("INHERENT")

    @property
    def residual_assessment(self) -> Optional["RiskAssessment"]:
        return self.get_assessment("RESIDUAL")

    @property
    def current_assessment(self) -> Optional["RiskAssessment"]:
        """Residual assessment when present, otherwise inherent."""
        return self.residual_assessment or self.inherent_assessment
