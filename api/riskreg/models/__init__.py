"""Models package."""
from riskreg.models.base import Base
from riskreg.models.org_unit import OrgUnit
from riskreg.models.user import User
from riskreg.models.taxonomy import RiskTaxonomy
from riskreg.models.criteria import RiskCriteria
from riskreg.models.objective import StrategicObjective
from riskreg.models.risk import Risk
from riskreg.models.risk_assessment import RiskAssessment, AssessmentType
from riskreg.models.control import ExistingControl, EffectivenessRating
from riskreg.models.kri import KeyRiskIndicator
from riskreg.models.treatment import (
    TreatmentPlan,
    TreatmentRealization,
    TreatmentOption,
    RealizationStatus,
)
from riskreg.models.reporting import (
    ReportTemplate,
    ReportHistory,
    ScheduledReport,
    ReportExecution,
    EmailTemplate,
    ReportType,
    ReportStatus,
    ExecutionStatus,
)
from riskreg.models.audit_log import AuditLog

__all__ = [
    "Base",
    "OrgUnit",
    "User",
    "RiskTaxonomy",
    "RiskCriteria",
    "StrategicObjective",
    "Risk",
    "RiskAssessment",
    "AssessmentType",
    "ExistingControl",
    "EffectivenessRating",
    "KeyRiskIndicator",
    "TreatmentPlan",
    "TreatmentRealization",
    "TreatmentOption",
    "RealizationStatus",
    # Reporting
    "ReportTemplate",
    "ReportHistory",
    "ScheduledReport",
    "ReportExecution",
    "EmailTemplate",
    "ReportType",
    "ReportStatus",
    "ExecutionStatus",
    "AuditLog",
]
